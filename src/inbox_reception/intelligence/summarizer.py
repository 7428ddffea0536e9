"""On-demand detailed summaries streamed from the summarization service."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass

from inbox_reception.core.interfaces import (
    StreamingSummarizer,
    SummarizationError,
    SummarizerUnavailableError,
)

from .llm import LLMError

LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class SummaryAccumulator:
    """Running text of a streamed summary."""

    text: str = ""

    def add(self, chunk: str) -> None:
        self.text += chunk

    @property
    def points(self) -> list[str]:
        return to_points(self.text)


def to_points(text: str) -> list[str]:
    """Split summary text into non-blank lines without leading ``- `` bullets."""
    return [line.removeprefix("- ") for line in text.splitlines() if line.strip()]


class DetailSummarizer:
    """Stream a key-point summary for a single message snippet."""

    def __init__(self, summarizer: StreamingSummarizer | None) -> None:
        """``summarizer`` is ``None`` when the capability was not negotiated."""
        self._summarizer = summarizer

    @property
    def available(self) -> bool:
        return self._summarizer is not None

    async def summarize_detailed(
        self, snippet: str, accumulator: SummaryAccumulator | None = None
    ) -> AsyncIterator[str]:
        """Yield summary chunks, appending each to ``accumulator`` first.

        A fault mid-stream raises :class:`SummarizationError`; text already
        appended to the accumulator is kept.
        """
        if self._summarizer is None:
            raise SummarizerUnavailableError("Summarizer API is not available.")
        if not snippet:
            raise SummarizationError("No content to summarize.")
        try:
            async for chunk in self._summarizer.summarize_streaming(snippet):
                if accumulator is not None:
                    accumulator.add(chunk)
                yield chunk
        except (LLMError, ValueError) as exc:
            LOGGER.error("Detailed summarization failed: %s", exc)
            raise SummarizationError("Could not generate detailed summary.") from exc

    async def summarize_points(
        self, snippet: str, accumulator: SummaryAccumulator | None = None
    ) -> list[str]:
        """Consume the whole stream and return the summary as points."""
        target = accumulator if accumulator is not None else SummaryAccumulator()
        async for _ in self.summarize_detailed(snippet, target):
            pass
        return target.points


__all__ = ["DetailSummarizer", "SummaryAccumulator", "to_points"]
