"""Deterministic transcription adapter for local development."""

from voicememo.adapters.transcription.base import TranscriptionAdapter, TranscriptionResult


class MockTranscriptionAdapter(TranscriptionAdapter):
    async def _transcribe(self, audio: bytes, *, audio_format: str, language_hint: str) -> TranscriptionResult:
        return TranscriptionResult(
            text=f"Mock transcript of {len(audio)} bytes of {audio_format} audio.",
            language=language_hint,
            confidence=1.0,
        )


__all__ = ["MockTranscriptionAdapter"]
