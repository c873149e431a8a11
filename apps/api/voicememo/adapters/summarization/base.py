"""Text summarization adapter interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class SummaryResult:
    model: str
    text: str


class SummarizationAdapter(ABC):
    @abstractmethod
    async def summarize(self, text: str) -> SummaryResult:
        """Return a short summary of ``text`` or raise ``SummarizationError``."""

    async def aclose(self) -> None:
        return None


__all__ = ["SummarizationAdapter", "SummaryResult"]
