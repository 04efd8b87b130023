"""Overlap and containment arithmetic on half-open ``[start, end)`` ranges.

Every component that compares time ranges (availability, conflict checks,
slot planning) goes through ``overlaps`` and ``covers`` so the boundary rules
live in one place: ranges that only touch at an endpoint do not overlap.
"""

import re
from datetime import date, datetime, time
from typing import TypeVar

from backend.core.exceptions import ValidationException

T = TypeVar('T', int, time, datetime)

CLOCK_PATTERN = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)(?::([0-5]\d))?$')
MINUTES_PER_DAY = 24 * 60


def overlaps(a_start: T, a_end: T, b_start: T, b_end: T) -> bool:
    return a_start < b_end and b_start < a_end


def covers(outer_start: T, outer_end: T, inner_start: T, inner_end: T) -> bool:
    return outer_start <= inner_start and outer_end >= inner_end


def parse_clock(value: str | time) -> time:
    """Parse ``HH:MM`` (optionally ``HH:MM:SS``) and drop the seconds."""
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)

    match = CLOCK_PATTERN.match((value or '').strip())
    if not match:
        raise ValidationException(
            f"Invalid time format {value!r}. Please use 'hh:mm' format.",
            code='BadTimeFormat',
        )
    return time(int(match.group(1)), int(match.group(2)))


def to_minutes(value: time) -> int:
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f'{minutes} minutes is outside a single day')
    return time(minutes // 60, minutes % 60)


def minutes_between(start: time, end: time) -> int:
    return to_minutes(end) - to_minutes(start)


def at(day: date, clock: time) -> datetime:
    return datetime.combine(day, clock)


def format_clock(value: time) -> str:
    return value.strftime('%H:%M')

