"""Accumulate analysis results per message and order them for display."""

from __future__ import annotations

from collections.abc import Iterable, Sequence

from inbox_reception.core.models import AnalysisResult, MessageDetail, ScoredMessage

DEFAULT_SCORE_THRESHOLD = 40


class ScoredCollection:
    """Master list of messages keyed by id, in fetch order.

    Results are replaced whole, never edited field by field, and
    :meth:`snapshot` returns immutable copies, so a consumer never observes a
    partially written analysis.
    """

    def __init__(self, details: Sequence[MessageDetail]) -> None:
        self._details = {detail.id: detail for detail in details}
        self._results = {
            message_id: AnalysisResult.placeholder(message_id)
            for message_id in self._details
        }

    def __len__(self) -> int:
        return len(self._details)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._details

    def apply(self, result: AnalysisResult) -> bool:
        """Replace the result for ``result.id``; unknown ids are ignored."""
        if result.id not in self._results:
            return False
        self._results[result.id] = result
        return True

    def fail(self, message_ids: Iterable[str]) -> None:
        """Replace the results for ``message_ids`` with failure records."""
        for message_id in message_ids:
            if message_id in self._results:
                self._results[message_id] = AnalysisResult.failure(message_id)

    def result(self, message_id: str) -> AnalysisResult:
        return self._results[message_id]

    def pending_ids(self) -> list[str]:
        return [key for key, value in self._results.items() if value.is_pending]

    def snapshot(self) -> tuple[ScoredMessage, ...]:
        """Return the joined collection in fetch order."""
        return tuple(
            ScoredMessage(detail=detail, analysis=self._results[message_id])
            for message_id, detail in self._details.items()
        )


def sort_by_score(items: Iterable[ScoredMessage]) -> list[ScoredMessage]:
    """Sort by score descending; equal scores keep their input order."""
    return sorted(items, key=lambda item: item.score, reverse=True)


def is_low_priority(score: int, threshold: int = DEFAULT_SCORE_THRESHOLD) -> bool:
    """Return ``True`` for scored (non-pending) results below ``threshold``."""
    return 0 <= score < threshold


__all__ = [
    "DEFAULT_SCORE_THRESHOLD",
    "ScoredCollection",
    "is_low_priority",
    "sort_by_score",
]
