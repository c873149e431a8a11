"""Speech-to-text adapter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from voicememo.domain.audio_validation import validate_audio_payload


@dataclass(frozen=True, slots=True)
class TranscriptionResult:
    text: str
    language: str
    confidence: float


class TranscriptionAdapter(ABC):
    """Provider-neutral transcription interface.

    ``transcribe`` validates the payload before the provider is contacted, so
    an empty, oversized or unrecognised file never costs an external call.
    """

    def __init__(self, *, max_audio_bytes: int) -> None:
        self._max_audio_bytes = max_audio_bytes

    async def transcribe(self, audio: bytes, *, language_hint: str = "en") -> TranscriptionResult:
        audio_format = validate_audio_payload(audio, max_bytes=self._max_audio_bytes)
        return await self._transcribe(audio, audio_format=audio_format, language_hint=language_hint)

    @abstractmethod
    async def _transcribe(self, audio: bytes, *, audio_format: str, language_hint: str) -> TranscriptionResult:
        """Call the provider with an already validated payload."""

    async def aclose(self) -> None:
        return None


__all__ = ["TranscriptionAdapter", "TranscriptionResult"]
