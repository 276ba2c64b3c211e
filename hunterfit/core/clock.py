"""
Clock abstraction.

Engines never call ``datetime.now()`` directly; they ask an injected clock so
cooldowns, streaks and completion times are deterministic under test.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Current timezone-aware UTC time."""
        ...

    def today(self) -> date:
        """Current UTC calendar date."""
        ...


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """
    Manually driven clock for tests and replays.

    >>> clock = FixedClock(datetime(2025, 1, 1, tzinfo=timezone.utc))
    >>> clock.advance(hours=25)
    """

    def __init__(self, start: datetime) -> None:
        if start.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._now = start.astimezone(timezone.utc)

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._now.date()

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("FixedClock requires a timezone-aware datetime")
        self._now = value.astimezone(timezone.utc)

    def advance(self, **delta: float) -> datetime:
        self._now = self._now + timedelta(**delta)
        return self._now
