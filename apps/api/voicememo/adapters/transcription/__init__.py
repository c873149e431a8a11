"""Speech-to-text adapters."""

from .base import TranscriptionAdapter, TranscriptionResult
from .mock import MockTranscriptionAdapter
from .whisper import WhisperTranscriptionAdapter

__all__ = [
    "MockTranscriptionAdapter",
    "TranscriptionAdapter",
    "TranscriptionResult",
    "WhisperTranscriptionAdapter",
]
