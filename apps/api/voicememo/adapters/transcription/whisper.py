"""OpenAI Whisper transcription adapter."""

from __future__ import annotations

import logging

import httpx

from voicememo.adapters.errors import TranscriptionError
from voicememo.adapters.http_support import describe_transport_error, provider_error_message
from voicememo.adapters.transcription.base import TranscriptionAdapter, TranscriptionResult

logger = logging.getLogger(__name__)

# Whisper does not report a confidence score.
_WHISPER_CONFIDENCE = 0.95

_CONTENT_TYPES: dict[str, str] = {
    "mp3": "audio/mpeg",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "flac": "audio/flac",
    "m4a": "audio/mp4",
    "aac": "audio/aac",
}


class WhisperTranscriptionAdapter(TranscriptionAdapter):
    def __init__(
        self,
        *,
        api_key: str | None,
        max_audio_bytes: int,
        timeout_seconds: float = 60.0,
        model: str = "whisper-1",
        base_url: str = "https://api.openai.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(max_audio_bytes=max_audio_bytes)
        self._api_key = api_key
        self._model = model
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, transport=transport)

    async def _transcribe(self, audio: bytes, *, audio_format: str, language_hint: str) -> TranscriptionResult:
        if not self._api_key:
            raise TranscriptionError("Transcription failed: speech-to-text provider is not configured")

        files = {"file": (f"audio.{audio_format}", audio, _CONTENT_TYPES.get(audio_format, "application/octet-stream"))}
        data = {"model": self._model, "language": language_hint, "response_format": "json"}
        try:
            response = await self._client.post(
                "/v1/audio/transcriptions",
                data=data,
                files=files,
                headers={"Authorization": f"Bearer {self._api_key}"},
            )
        except httpx.HTTPError as exc:
            logger.warning("whisper.request_failed reason=%s", type(exc).__name__)
            raise TranscriptionError(f"Transcription failed: {describe_transport_error(exc)}") from exc

        if response.is_error:
            logger.warning("whisper.rejected status_code=%s", response.status_code)
            raise TranscriptionError(f"Transcription failed: {provider_error_message(response)}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError("Transcription failed: malformed provider response") from exc

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str):
            raise TranscriptionError("Transcription failed: malformed provider response")

        language = payload.get("language")
        return TranscriptionResult(
            text=text.strip(),
            language=language if isinstance(language, str) and language else language_hint,
            confidence=_WHISPER_CONFIDENCE,
        )

    async def aclose(self) -> None:
        await self._client.aclose()


__all__ = ["WhisperTranscriptionAdapter"]
