"""Failures raised by third-party service adapters.

Every adapter failure is caught by the pipeline and recorded on the job; none
of these reach an HTTP client directly.
"""


class AdapterError(Exception):
    """Base class for failures at an external service boundary."""


class AudioStorageError(AdapterError):
    """Audio reference could not be resolved or read."""


class AudioValidationError(AdapterError):
    """Audio payload is empty, oversized or not a recognised format."""


class TranscriptionError(AdapterError):
    """Speech-to-text provider failed or returned an unusable response."""


class SummarizationError(AdapterError):
    """Summarization provider failed or returned an unusable response."""


__all__ = [
    "AdapterError",
    "AudioStorageError",
    "AudioValidationError",
    "SummarizationError",
    "TranscriptionError",
]
