"""
Pure cron evaluation for the declaration driver.

Contract:
    ``parse_cron``, ``matches_cron``, ``next_fire_time`` and ``is_due`` are
    PURE -- no I/O, no clock reads.  The scheduler passes the current time.

Architecture: declaration_batch/domain.  ZERO I/O.

Cron dialect:
    ``minute hour day_of_month month day_of_week``; ``*``, values, ranges,
    steps and comma lists.  Day of week 0 and 7 both mean Sunday.  When
    both day fields are restricted, a time matches if EITHER matches
    (classic cron behaviour).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

_FIELDS = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day_of_month", 1, 31),
    ("month", 1, 12),
    ("day_of_week", 0, 7),
)


@dataclass(frozen=True)
class CronSpec:
    """Parsed cron expression; each field is the set of allowed values."""

    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days_of_month: frozenset[int]
    months: frozenset[int]
    days_of_week: frozenset[int]  # 0 = Sunday
    day_of_month_restricted: bool
    day_of_week_restricted: bool


def _int(text: str, name: str) -> int:
    if not text.isdigit():
        raise ValueError(f"Cron {name}: {text!r} is not a number")
    return int(text)


def _parse_field(text: str, name: str, low: int, high: int) -> frozenset[int]:
    values: set[int] = set()
    for part in text.split(","):
        if not part:
            raise ValueError(f"Cron {name}: empty list element in {text!r}")
        base, _, step_text = part.partition("/")
        step = _int(step_text, name) if step_text else 1
        if step <= 0:
            raise ValueError(f"Cron {name}: step must be positive in {part!r}")

        if base == "*":
            start, end = low, high
        elif "-" in base:
            start_text, end_text = base.split("-", 1)
            start, end = _int(start_text, name), _int(end_text, name)
        else:
            start = _int(base, name)
            end = high if step_text else start

        if not (low <= start <= high and low <= end <= high):
            raise ValueError(f"Cron {name}: {part!r} outside {low}-{high}")
        if start > end:
            raise ValueError(f"Cron {name}: range start > end in {part!r}")
        values.update(range(start, end + 1, step))
    return frozenset(values)


def parse_cron(expression: str) -> CronSpec:
    """
    Parse a 5-field cron expression.

    Raises:
        ValueError: wrong field count, malformed or out-of-range values.
    """
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(
            f"Cron expression must have 5 fields, got {len(parts)}: '{expression}'"
        )
    parsed = [
        _parse_field(part, name, low, high)
        for part, (name, low, high) in zip(parts, _FIELDS)
    ]
    days_of_week = frozenset(0 if d == 7 else d for d in parsed[4])
    return CronSpec(
        expression=expression,
        minutes=parsed[0],
        hours=parsed[1],
        days_of_month=parsed[2],
        months=parsed[3],
        days_of_week=days_of_week,
        day_of_month_restricted=parts[2] != "*",
        day_of_week_restricted=parts[4] != "*",
    )


def matches_cron(spec: CronSpec, moment: datetime) -> bool:
    """True when ``moment`` (to the minute) satisfies ``spec``."""
    if (
        moment.minute not in spec.minutes
        or moment.hour not in spec.hours
        or moment.month not in spec.months
    ):
        return False
    # Python: Monday=0; cron: Sunday=0.
    dow_match = (moment.weekday() + 1) % 7 in spec.days_of_week
    dom_match = moment.day in spec.days_of_month
    if spec.day_of_month_restricted and spec.day_of_week_restricted:
        return dom_match or dow_match
    return dom_match and dow_match


def next_fire_time(spec: CronSpec, after: datetime) -> datetime:
    """
    First matching minute strictly after ``after``.

    Raises:
        ValueError: nothing matches within 366 days (e.g. ``0 0 31 2 *``).
    """
    candidate = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
    for _ in range(366 * 24 * 60):
        if matches_cron(spec, candidate):
            return candidate
        candidate += timedelta(minutes=1)
    raise ValueError(f"'{spec.expression}' never fires within 366 days after {after}")


def minute_of(moment: datetime) -> datetime:
    return moment.replace(second=0, microsecond=0)


def is_due(spec: CronSpec, now: datetime, last_fired_minute: datetime | None) -> bool:
    """
    An entry is due when ``now`` matches and it has not fired this minute.

    Ticks may come more often than once per minute; ``last_fired_minute``
    makes a matching minute fire once.
    """
    if not matches_cron(spec, now):
        return False
    return last_fired_minute is None or last_fired_minute != minute_of(now)
