"""
Clock -- injectable time source for the declaration pipeline.

Detection derives its cutoff period from the clock, jobs and sessions take
their created/fulfilled timestamps from it, and the batch scheduler matches
cron expressions against it.  None of them call ``datetime.now()``.

Architecture position:
    Kernel > Domain.  ``SystemClock`` is the only place that reads the
    system time.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone, tzinfo


class Clock(ABC):
    """
    Time source handed to services through their constructor.

    Guarantees:
        - ``now()`` is timezone-aware.
        - ``local_now(tz)`` is the same instant expressed in ``tz``; reporting
          periods are decided on the local calendar, not on UTC.
    """

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)

    def local_now(self, tz: tzinfo) -> datetime:
        """Current instant in the reporting timezone ``tz``."""
        return self.now().astimezone(tz)


class SystemClock(Clock):
    """Wall-clock time, UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Frozen clock for tests.

    Starts at 2025-12-04 12:00 UTC: before the 20th, so the cutoff period is
    November 2025 and monthly jobs target November as well.  Time only moves
    through ``set_time()`` and ``advance()``.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(2025, 12, 4, 12, 0, tzinfo=timezone.utc)
        self._offset = timedelta(0)

    def now(self) -> datetime:
        return self._fixed_time + self._offset

    def set_time(self, time: datetime) -> None:
        if time.tzinfo is None:
            raise ValueError("DeterministicClock requires a timezone-aware datetime")
        self._fixed_time = time
        self._offset = timedelta(0)

    def advance(self, seconds: int = 1) -> None:
        self._offset += timedelta(seconds=seconds)
