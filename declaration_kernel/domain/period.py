"""
Reporting periods and the late-declaration cutoff.

Responsibility:
    ``Period`` is the (month, year) unit every declaration reports on.  It
    round-trips between a timestamp (detection side) and the registry's
    6-character ``MMyyyy`` string (approval side).  ``cutoff_period`` maps
    "now" to the latest period whose regular declaration deadline has
    passed.

Architecture position:
    Kernel > Domain -- pure functions and frozen values.  ZERO I/O.

Invariants enforced:
    - month is always in 1..12; construction fails otherwise.
    - ``Period.parse(p.format()) == p`` for every valid period.
    - The regular deadline for a month is the ``threshold_day`` of the
      following month.  Before that day the cutoff is the previous month,
      from that day on it is the current month.

Failure modes:
    - PeriodFormatError for malformed strings and out-of-range months.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo

from declaration_kernel.exceptions import PeriodFormatError

DEFAULT_CUTOFF_DAY = 20


@dataclass(frozen=True, order=True)
class Period:
    """A calendar month.  Ordered chronologically (year first)."""

    year: int
    month: int

    def __post_init__(self) -> None:
        if not 1 <= self.month <= 12:
            raise PeriodFormatError(
                f"{self.month:02d}{self.year}", f"month {self.month} outside 1-12"
            )
        if not 1 <= self.year <= 9999:
            raise PeriodFormatError(
                f"{self.month:02d}{self.year}", f"year {self.year} outside 1-9999"
            )

    @classmethod
    def parse(cls, value: str) -> Period:
        """
        Parse the registry's ``MMyyyy`` representation.

        Raises:
            PeriodFormatError: wrong length, non-digit characters or a month
                outside 01-12.
        """
        if not isinstance(value, str) or len(value) != 6:
            raise PeriodFormatError(str(value), "expected exactly 6 characters (MMyyyy)")
        if not (value.isascii() and value.isdigit()):
            raise PeriodFormatError(value, "expected digits only (MMyyyy)")
        return cls(year=int(value[2:]), month=int(value[:2]))

    @classmethod
    def of(cls, moment: datetime, tz: tzinfo = timezone.utc) -> Period:
        """Reporting period of ``moment`` as seen in ``tz``."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=timezone.utc)
        local = moment.astimezone(tz)
        return cls(year=local.year, month=local.month)

    def format(self) -> str:
        """``MMyyyy``, e.g. ``112025`` for November 2025."""
        return f"{self.month:02d}{self.year:04d}"

    def previous(self) -> Period:
        if self.month == 1:
            return Period(year=self.year - 1, month=12)
        return Period(year=self.year, month=self.month - 1)

    def next(self) -> Period:
        if self.month == 12:
            return Period(year=self.year + 1, month=1)
        return Period(year=self.year, month=self.month + 1)

    def start(self, tz: tzinfo = timezone.utc) -> datetime:
        """First instant of the month in ``tz``."""
        return datetime(self.year, self.month, 1, tzinfo=tz)

    def __str__(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


def cutoff_period(now: datetime, threshold_day: int = DEFAULT_CUTOFF_DAY) -> Period:
    """
    Cutoff period for late-declaration sweeps.

    ``cutoff(2025-12-04) = 2025-11``; ``cutoff(2025-12-20) = 2025-12``;
    ``cutoff(2026-01-04) = 2025-12``.
    """
    current = Period(year=now.year, month=now.month)
    if now.day < threshold_day:
        return current.previous()
    return current


def late_boundary(cutoff: Period, tz: tzinfo = timezone.utc) -> datetime:
    """
    Exclusive upper bound for late weight-ticket lines.

    Lines weighed strictly before the first instant of the cutoff period are
    late; the cutoff month itself is still within its regular deadline.
    """
    return cutoff.start(tz)
