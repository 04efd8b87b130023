"""
Instructor availability intervals.

Intervals are declared per instructor and date. Two intervals of the same
instructor on the same date never overlap, and an interval that already has
appointments inside its window can be neither moved nor removed.
"""

import logging
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from backend.auth.permissions import Caller, ensure_can_manage_availability
from backend.core.exceptions import ConflictException, NotFoundException, ValidationException
from backend.core.locks import instructor_key, resource_locks
from backend.models.availability import Availability
from backend.models.user import User
from backend.scheduling.conflict_checker import ResourceKind, appointments_for_resource, lock_resource_rows
from backend.scheduling.interval_math import overlaps, parse_clock

logger = logging.getLogger(__name__)


def _get_instructor(db: Session, instructor_id: int) -> User:
    instructor = db.query(User).filter(User.id == instructor_id).first()
    if instructor is None:
        raise NotFoundException('Instructor not found.', code='NotFound')
    return instructor


def _get_interval(db: Session, interval_id: int, instructor_id: Optional[int] = None) -> Availability:
    query = db.query(Availability).filter(Availability.id == interval_id)
    if instructor_id is not None:
        query = query.filter(Availability.instructor_id == instructor_id)
    interval = query.first()
    if interval is None:
        raise NotFoundException('Availability interval not found.', code='NotFound')
    return interval


def validate_window(day: date, start: str | time, end: str | time, today: date) -> tuple[time, time]:
    start_time = parse_clock(start)
    end_time = parse_clock(end)

    if start_time >= end_time:
        raise ValidationException('Start time must be earlier than end time.', code='InvalidRange')

    if day < today:
        raise ValidationException('Availability cannot be set for past dates.', code='PastDate')

    return start_time, end_time


def intervals_on(db: Session, instructor_id: int, day: date) -> list[Availability]:
    return db.query(Availability).filter(
        Availability.instructor_id == instructor_id,
        Availability.date == day,
    ).order_by(Availability.start_time.asc()).all()


def _ensure_no_overlap(
    db: Session,
    instructor_id: int,
    day: date,
    start: time,
    end: time,
    exclude_interval_id: Optional[int] = None,
) -> None:
    for existing in intervals_on(db, instructor_id, day):
        if existing.id == exclude_interval_id:
            continue
        if overlaps(start, end, existing.start_time, existing.end_time):
            raise ConflictException(
                'This time interval overlaps with an existing availability.',
                code='Overlap',
                details={'interval_id': existing.id},
            )


def has_bookings(db: Session, interval: Availability) -> bool:
    """True when any appointment of the instructor falls inside the interval's window."""
    return any(
        overlaps(appointment.start_time, appointment.end_time, interval.start_time, interval.end_time)
        for appointment in appointments_for_resource(
            db, ResourceKind.INSTRUCTOR, interval.instructor_id, interval.date
        )
    )


def list_future(db: Session, caller: Caller, instructor_id: int, now: Optional[datetime] = None) -> list[Availability]:
    now = now or datetime.now()
    instructor = _get_instructor(db, instructor_id)
    ensure_can_manage_availability(caller, instructor)

    return db.query(Availability).filter(
        Availability.instructor_id == instructor_id,
        Availability.date >= now.date(),
    ).order_by(Availability.date.asc(), Availability.start_time.asc()).all()


def create_interval(
    db: Session,
    caller: Caller,
    instructor_id: int,
    day: date,
    start: str | time,
    end: str | time,
    now: Optional[datetime] = None,
) -> Availability:
    now = now or datetime.now()
    instructor = _get_instructor(db, instructor_id)
    ensure_can_manage_availability(caller, instructor)
    start_time, end_time = validate_window(day, start, end, now.date())

    with resource_locks(instructor_key(instructor_id, day)):
        lock_resource_rows(db, instructor_id)
        _ensure_no_overlap(db, instructor_id, day, start_time, end_time)

        interval = Availability(
            instructor_id=instructor_id,
            date=day,
            start_time=start_time,
            end_time=end_time,
        )
        db.add(interval)
        db.commit()
        db.refresh(interval)

    logger.info('Created availability %s for instructor %s on %s', interval.id, instructor_id, day)
    return interval


def update_interval(
    db: Session,
    caller: Caller,
    instructor_id: int,
    interval_id: int,
    day: date,
    start: str | time,
    end: str | time,
    now: Optional[datetime] = None,
) -> Availability:
    now = now or datetime.now()
    instructor = _get_instructor(db, instructor_id)
    ensure_can_manage_availability(caller, instructor)
    interval = _get_interval(db, interval_id, instructor_id)
    start_time, end_time = validate_window(day, start, end, now.date())

    with resource_locks(instructor_key(instructor_id, interval.date), instructor_key(instructor_id, day)):
        lock_resource_rows(db, instructor_id)
        _ensure_no_overlap(db, instructor_id, day, start_time, end_time, exclude_interval_id=interval.id)

        if has_bookings(db, interval):
            raise ConflictException(
                'Cannot update availability that has appointments scheduled.',
                code='HasBookings',
            )

        interval.date = day
        interval.start_time = start_time
        interval.end_time = end_time
        db.commit()
        db.refresh(interval)

    logger.info('Updated availability %s for instructor %s', interval.id, instructor_id)
    return interval


def delete_interval(
    db: Session,
    caller: Caller,
    instructor_id: int,
    interval_id: int,
    now: Optional[datetime] = None,
) -> None:
    now = now or datetime.now()
    instructor = _get_instructor(db, instructor_id)
    ensure_can_manage_availability(caller, instructor)
    interval = _get_interval(db, interval_id, instructor_id)

    if interval.date < now.date():
        raise ValidationException('Cannot delete availability intervals from the past.', code='PastDate')

    with resource_locks(instructor_key(instructor_id, interval.date)):
        lock_resource_rows(db, instructor_id)
        if has_bookings(db, interval):
            raise ConflictException(
                'Cannot delete availability that has appointments scheduled.',
                code='HasBookings',
            )

        db.delete(interval)
        db.commit()

    logger.info('Deleted availability %s for instructor %s', interval_id, instructor_id)
