"""
Injectable time source.

Workflows never call datetime.now() directly; they receive a Clock so that
advance-notice and past-booking checks are deterministic in tests.
"""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current time as a timezone-aware datetime."""
        ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Clock pinned to a fixed instant; advance() moves it forward."""

    def __init__(self, current: datetime):
        if current.tzinfo is None:
            raise ValueError("FrozenClock requires a timezone-aware datetime")
        self._current = current

    def now(self) -> datetime:
        return self._current

    def advance(self, delta: timedelta) -> None:
        self._current = self._current + delta


def ensure_aware(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC (some drivers drop tzinfo on read)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt
