from __future__ import annotations

from datetime import UTC, datetime
from typing import Protocol


class Clock(Protocol):
    """Source of the current time. Services read it once per operation."""

    def now(self) -> datetime: ...


class SystemClock(Clock):
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(UTC)


def to_timestamp(dt: datetime) -> int:
    """Return integer epoch seconds; naive datetimes are labelled as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return int(dt.timestamp())


def from_timestamp(ts: int | float) -> datetime:
    return datetime.fromtimestamp(int(ts), tz=UTC)
