"""
habitchallenge.engine.clock — Injectable Clock
===============================================

Services never call ``datetime.now()`` directly; they ask the clock they
were constructed with.  Production uses :class:`SystemClock` bound to the
configured timezone, tests pin "now" with :class:`FixedClock`.

All timestamps are naive local wall-clock values in that timezone.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> date: ...


class SystemClock:
    """Wall clock in a fixed IANA timezone."""

    def __init__(self, timezone: str = "UTC") -> None:
        self.tz = ZoneInfo(timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz).replace(tzinfo=None)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, current: datetime) -> None:
        self.current = current

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, **kwargs) -> None:
        """Move forward by ``timedelta(**kwargs)``."""
        self.current = self.current + timedelta(**kwargs)

    def set(self, current: datetime) -> None:
        self.current = current
