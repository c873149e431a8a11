"""Deterministic summarization adapter for local development."""

from voicememo.adapters.summarization.base import SummarizationAdapter, SummaryResult

_MAX_WORDS = 80


class MockSummarizationAdapter(SummarizationAdapter):
    model_name = "mock-summarizer"

    async def summarize(self, text: str) -> SummaryResult:
        words = text.split()
        return SummaryResult(model=self.model_name, text=" ".join(words[:_MAX_WORDS]))


__all__ = ["MockSummarizationAdapter"]
