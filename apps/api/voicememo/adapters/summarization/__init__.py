"""Text summarization adapters."""

from .base import SummarizationAdapter, SummaryResult
from .gemini import GeminiSummarizationAdapter
from .mock import MockSummarizationAdapter

__all__ = [
    "GeminiSummarizationAdapter",
    "MockSummarizationAdapter",
    "SummarizationAdapter",
    "SummaryResult",
]
