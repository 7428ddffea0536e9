"""Batch scoring of recent unread mail against the user's priority profile."""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any

from pydantic import TypeAdapter

from inbox_reception.core.config import ScoringSettings
from inbox_reception.core.datetime_utils import epoch_seconds_ago, utc_now
from inbox_reception.core.interfaces import (
    BatchScoringError,
    LanguageModel,
    MessageSource,
    StatusCallback,
    notify,
)
from inbox_reception.core.models import (
    AnalysisResult,
    MessageDetail,
    ScoredMessage,
    UserProfile,
)

from .llm import LLMError
from .prompts import SCORING_SCHEMA, build_scoring_prompt
from .ranking import ScoredCollection

LOGGER = logging.getLogger(__name__)

Snapshot = tuple[ScoredMessage, ...]
BatchCallback = Callable[[Snapshot], Awaitable[None] | None]
CAUGHT_UP_STATUS = "No unread emails in the last {days} days. You're all caught up!"

_RESULTS_ADAPTER = TypeAdapter(list[AnalysisResult])


class ScoringEngine:
    """Score the recent unread window in sequential fixed-size batches."""

    def __init__(
        self,
        source: MessageSource,
        model: LanguageModel,
        settings: ScoringSettings,
        *,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._source = source
        self._model = model
        self._settings = settings
        self._clock = clock

    def window_query(self) -> str:
        """Return the search query selecting the scoring window."""
        after = epoch_seconds_ago(self._settings.window_days, now=self._clock())
        return f"is:inbox is:unread after:{after}"

    async def score_recent(
        self,
        profile: UserProfile,
        on_batch: BatchCallback,
        status: StatusCallback | None = None,
    ) -> None:
        """Score the window, handing the whole collection to ``on_batch`` each step.

        ``on_batch`` is called once with placeholders, then once after every
        batch. An empty window results in a single call with an empty tuple.
        """
        async for snapshot in self.iter_snapshots(profile, status):
            outcome = on_batch(snapshot)
            if inspect.isawaitable(outcome):
                await outcome

    async def iter_snapshots(
        self, profile: UserProfile, status: StatusCallback | None = None
    ) -> AsyncIterator[Snapshot]:
        """Yield the accumulated collection after each scoring step."""
        notify(status, "Fetching recent unread emails...")
        details = await self._source.fetch_messages(
            self.window_query(), self._settings.window_size, strict=True
        )
        if not details:
            notify(status, CAUGHT_UP_STATUS.format(days=self._settings.window_days))
            yield ()
            return

        collection = ScoredCollection(details)
        yield collection.snapshot()

        total = len(details)
        size = self._settings.batch_size
        for start in range(0, total, size):
            batch = details[start : start + size]
            notify(
                status,
                f"Analyzing emails {start + 1}-{start + len(batch)} of {total}...",
            )
            try:
                results = await self._score_batch(profile, batch)
            except BatchScoringError as exc:
                LOGGER.error(
                    "Batch scoring failed for emails %d-%d: %s",
                    start + 1,
                    start + len(batch),
                    exc.__cause__ or exc,
                )
                collection.fail(item.id for item in batch)
            else:
                _merge_batch(collection, batch, results)
            yield collection.snapshot()

    async def _score_batch(
        self, profile: UserProfile, batch: Sequence[MessageDetail]
    ) -> list[AnalysisResult]:
        prompt = build_scoring_prompt(profile, batch)
        try:
            raw_output = await self._model.prompt(prompt, SCORING_SCHEMA)
            payload = _clamp_scores(json.loads(raw_output))
            return _RESULTS_ADAPTER.validate_python(payload)
        except (LLMError, ValueError) as exc:
            raise BatchScoringError(f"Batch of {len(batch)} could not be scored") from exc


def _merge_batch(
    collection: ScoredCollection,
    batch: Sequence[MessageDetail],
    results: Sequence[AnalysisResult],
) -> None:
    batch_ids = {item.id for item in batch}
    for result in results:
        if result.id in batch_ids:
            collection.apply(result)
        else:
            LOGGER.debug("Dropping result for unknown message id %s", result.id)
    missing = batch_ids.difference(result.id for result in results)
    if missing:
        LOGGER.warning("Model returned no result for %d message(s)", len(missing))


def _clamp_scores(payload: Any) -> Any:
    if not isinstance(payload, list):
        return payload
    clamped = []
    for item in payload:
        score = item.get("score") if isinstance(item, dict) else None
        if isinstance(score, (int, float)) and not isinstance(score, bool):
            item = {**item, "score": max(0, min(100, score))}
        clamped.append(item)
    return clamped


__all__ = ["BatchCallback", "CAUGHT_UP_STATUS", "ScoringEngine", "Snapshot"]
