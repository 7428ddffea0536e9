"""Tests for on-demand detailed summaries."""

from __future__ import annotations

import pytest

from inbox_reception.core.interfaces import SummarizationError, SummarizerUnavailableError
from inbox_reception.intelligence.summarizer import (
    DetailSummarizer,
    SummaryAccumulator,
    to_points,
)

from conftest import FakeStreamer


def test_to_points_strips_bullets_and_blank_lines() -> None:
    text = "- First\n\n   \n- Second\nThird without bullet\n"
    assert to_points(text) == ["First", "Second", "Third without bullet"]


@pytest.mark.asyncio
async def test_summarize_points_accumulates_stream() -> None:
    summarizer = DetailSummarizer(FakeStreamer(["- One\n- Tw", "o\n", "- Three"]))
    accumulator = SummaryAccumulator()

    points = await summarizer.summarize_points("email body", accumulator)

    assert points == ["One", "Two", "Three"]
    assert accumulator.text == "- One\n- Two\n- Three"


@pytest.mark.asyncio
async def test_chunks_are_yielded_in_order() -> None:
    summarizer = DetailSummarizer(FakeStreamer(["a", "b", "c"]))
    chunks = [chunk async for chunk in summarizer.summarize_detailed("body")]
    assert chunks == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_unavailable_summarizer_raises() -> None:
    summarizer = DetailSummarizer(None)
    assert not summarizer.available
    with pytest.raises(SummarizerUnavailableError, match="not available"):
        await summarizer.summarize_points("body")


@pytest.mark.asyncio
async def test_empty_snippet_is_rejected() -> None:
    with pytest.raises(SummarizationError, match="No content"):
        await DetailSummarizer(FakeStreamer()).summarize_points("")


@pytest.mark.asyncio
async def test_mid_stream_failure_keeps_partial_text() -> None:
    streamer = FakeStreamer(["- Kept\n", "- Lost"])
    streamer.fail_after = 1
    accumulator = SummaryAccumulator()

    with pytest.raises(SummarizationError, match="Could not generate"):
        await DetailSummarizer(streamer).summarize_points("body", accumulator)
    assert accumulator.points == ["Kept"]
