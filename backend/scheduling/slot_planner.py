"""
Bookable slot enumeration.

Slots are cut from each availability interval on a fixed grid anchored at
the interval's own start and stepping by the session duration. A grid cell
that collides with a booking is skipped; the grid itself never shifts.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Iterator, Optional

from sqlalchemy.orm import Session

from backend.auth.permissions import Caller, ensure_can_view_file
from backend.core.exceptions import ValidationException
from backend.scheduling.appointment_ledger import booking_context, get_file
from backend.scheduling.availability_store import intervals_on
from backend.scheduling.conflict_checker import AppointmentSlot, slot_is_free
from backend.scheduling.interval_math import at, covers, from_minutes, to_minutes


@dataclass(frozen=True)
class Slot:
    start: time
    end: time


def grid(interval_start: time, interval_end: time, session_duration: int) -> Iterator[Slot]:
    """Every ``session_duration``-long cell that fits inside the interval."""
    if session_duration <= 0:
        return

    end_minutes = to_minutes(interval_end)
    cursor = to_minutes(interval_start)
    while cursor + session_duration <= end_minutes:
        yield Slot(start=from_minutes(cursor), end=from_minutes(cursor + session_duration))
        cursor += session_duration


def enumerate_slots(
    db: Session,
    instructor_id: int,
    vehicle_id: Optional[int],
    day: date,
    session_duration: int,
    now: Optional[datetime] = None,
) -> Iterator[Slot]:
    now = now or datetime.now()
    if day < now.date():
        return

    for interval in intervals_on(db, instructor_id, day):
        for slot in grid(interval.start_time, interval.end_time, session_duration):
            if not covers(interval.start_time, interval.end_time, slot.start, slot.end):
                continue
            if at(day, slot.start) <= now:
                continue
            candidate = AppointmentSlot(
                instructor_id=instructor_id,
                vehicle_id=vehicle_id,
                date=day,
                start=slot.start,
                end=slot.end,
            )
            if slot_is_free(db, candidate):
                yield slot


def slots_for_file(
    db: Session,
    caller: Caller,
    file_id: int,
    day: date,
    now: Optional[datetime] = None,
) -> tuple[int, list[Slot]]:
    """Session duration and the bookable slots for a file's instructor and vehicle."""
    now = now or datetime.now()
    file = get_file(db, file_id)
    ensure_can_view_file(caller, file)
    context = booking_context(file)

    if day < now.date():
        raise ValidationException('Slots cannot be listed for past dates.', code='PastDate')

    slots = list(enumerate_slots(db, context.instructor_id, context.vehicle_id, day, context.session_duration, now))
    return context.session_duration, slots
