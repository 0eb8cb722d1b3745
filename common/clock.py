"""
Injectable clocks for the real-time pipeline.

Every timestamp and every simulated delay in the system goes through a Clock,
so components never call datetime.now() or asyncio.sleep() directly.

Design decisions:
- SystemClock is the production clock (UTC wall time, real asyncio sleeps)
- ManualClock is fully deterministic: time only moves when told to, and
  sleep() advances the clock instead of waiting
- Both expose the same two methods, so they are interchangeable everywhere
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


class Clock(Protocol):
    """Source of time and delays."""

    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class SystemClock:
    """Wall-clock time in UTC with real asyncio sleeps."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class ManualClock:
    """
    Deterministic clock for tests and scripted demos.

    sleep() advances the clock by the requested amount and yields control to
    the event loop once, so concurrent coroutines still interleave but no
    real time passes.

    Example:
        clock = ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))
        await clock.sleep(0.5)
        clock.now()  # 2024-01-01 00:00:00.500000+00:00
    """

    def __init__(self, start: Optional[datetime] = None):
        self._now = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)
        self.sleeps: list[float] = []

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: float = 0.0, **kwargs) -> datetime:
        """Move the clock forward. Extra kwargs are passed to timedelta."""
        self._now = self._now + timedelta(seconds=seconds, **kwargs)
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.advance(seconds)
        await asyncio.sleep(0)
