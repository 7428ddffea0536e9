"""Datetime helpers shared across the application."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

__all__ = [
    "utc_now",
    "ensure_utc",
    "to_epoch_millis",
    "from_epoch_millis",
    "epoch_seconds_ago",
]

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """Return ``value`` converted to UTC, assuming UTC for naive values."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch_millis(value: datetime) -> int:
    """Serialise ``value`` as integer milliseconds since the epoch."""
    aware = ensure_utc(value) or value
    return (aware - _EPOCH) // timedelta(milliseconds=1)


def from_epoch_millis(value: int | float | None) -> datetime | None:
    """Parse epoch milliseconds into an aware UTC datetime."""
    if value is None:
        return None
    return _EPOCH + timedelta(milliseconds=value)


def epoch_seconds_ago(days: int, *, now: datetime | None = None) -> int:
    """Return the whole-second epoch timestamp ``days`` before ``now``."""
    reference = ensure_utc(now) or utc_now()
    return int((reference - timedelta(days=days)).timestamp())
