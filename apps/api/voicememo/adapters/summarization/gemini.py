"""Google Gemini summarization adapter."""

from __future__ import annotations

import logging
from typing import Any

import httpx

from voicememo.adapters.errors import SummarizationError
from voicememo.adapters.http_support import describe_transport_error, provider_error_message
from voicememo.adapters.summarization.base import SummarizationAdapter, SummaryResult

logger = logging.getLogger(__name__)

_PROMPT_TEMPLATE = (
    "You are a concise voice note summarizer. Summarize the following recording "
    "in at most 80 words with a positive tone.\n\nText: {text}"
)
_GENERATION_CONFIG = {
    "maxOutputTokens": 256,
    "temperature": 0.7,
    "topP": 0.8,
    "topK": 40,
}


class GeminiSummarizationAdapter(SummarizationAdapter):
    def __init__(
        self,
        *,
        api_key: str | None,
        timeout_seconds: float = 30.0,
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com",
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._client = httpx.AsyncClient(base_url=base_url, timeout=timeout_seconds, transport=transport)

    async def summarize(self, text: str) -> SummaryResult:
        if not self._api_key:
            raise SummarizationError("Summarization failed: summary provider is not configured")

        body = {
            "contents": [{"parts": [{"text": _PROMPT_TEMPLATE.format(text=text)}]}],
            "generationConfig": _GENERATION_CONFIG,
        }
        try:
            response = await self._client.post(
                f"/v1beta/models/{self._model}:generateContent",
                params={"key": self._api_key},
                json=body,
            )
        except httpx.HTTPError as exc:
            logger.warning("gemini.request_failed reason=%s", type(exc).__name__)
            raise SummarizationError(f"Summarization failed: {describe_transport_error(exc)}") from exc

        if response.is_error:
            logger.warning("gemini.rejected status_code=%s", response.status_code)
            raise SummarizationError(f"Summarization failed: {provider_error_message(response)}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise SummarizationError("Summarization failed: malformed provider response") from exc

        generated = _first_candidate_text(payload)
        if not generated or not generated.strip():
            raise SummarizationError("Summarization failed: no summary generated")

        return SummaryResult(model=self._model, text=generated.strip())

    async def aclose(self) -> None:
        await self._client.aclose()


def _first_candidate_text(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    return text if isinstance(text, str) else None


__all__ = ["GeminiSummarizationAdapter"]
