"""
Committed driving lessons.

An appointment always lasts exactly the session duration of its file's
teaching category, starts in the future, sits inside one of the instructor's
availability intervals, and collides with no other appointment of the same
instructor or vehicle.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Optional

from sqlalchemy.orm import Session

from backend.auth.permissions import (
    Caller,
    ensure_can_book,
    ensure_can_view_file,
    ensure_can_view_instructor,
)
from backend.core.exceptions import ConflictException, NotFoundException, ValidationException
from backend.core.locks import instructor_key, resource_locks, vehicle_key
from backend.models.appointment import Appointment
from backend.models.file import File
from backend.models.session_form import SessionForm
from backend.models.user import User
from backend.scheduling.availability_store import intervals_on
from backend.scheduling.conflict_checker import AppointmentSlot, ensure_slot_free, lock_resource_rows
from backend.scheduling.interval_math import at, covers, minutes_between, parse_clock

logger = logging.getLogger(__name__)

STATUS_COMPLETED = 'completed'
STATUS_PENDING = 'pending'


@dataclass(frozen=True)
class BookingContext:
    """What a file contributes to a booking: who teaches, in what, for how long."""

    file: File
    instructor_id: int
    vehicle_id: Optional[int]
    session_duration: int


def get_file(db: Session, file_id: int) -> File:
    file = db.query(File).filter(File.id == file_id).first()
    if file is None:
        raise NotFoundException('File not found.', code='NotFound')
    return file


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None or appointment.file is None:
        raise NotFoundException('Appointment not found.', code='NotFound')
    return appointment


def booking_context(file: File) -> BookingContext:
    if file.instructor_id is None:
        raise ValidationException('The file has no instructor assigned.', code='NoInstructor')
    if file.teaching_category is None:
        raise ValidationException('The file has no teaching category assigned.', code='NoCategory')

    return BookingContext(
        file=file,
        instructor_id=file.instructor_id,
        vehicle_id=file.vehicle_id,
        session_duration=file.teaching_category.session_duration,
    )


def appointment_status(appointment: Appointment, now: datetime) -> str:
    return STATUS_COMPLETED if at(appointment.date, appointment.end_time) < now else STATUS_PENDING


def _validated_slot(
    context: BookingContext,
    day: date,
    start: str | time,
    end: str | time,
    now: datetime,
) -> AppointmentSlot:
    start_time = parse_clock(start)
    end_time = parse_clock(end)

    if start_time >= end_time:
        raise ValidationException('Start time must be earlier than end time.', code='BadRange')

    if at(day, start_time) <= now:
        raise ValidationException('Appointments must be scheduled in the future.', code='PastDateTime')

    duration = minutes_between(start_time, end_time)
    if duration != context.session_duration:
        raise ValidationException(
            f'Appointments for this category must last exactly {context.session_duration} minutes.',
            code='DurationMismatch',
            details={'expected_minutes': context.session_duration, 'requested_minutes': duration},
        )

    return AppointmentSlot.for_file(context.file, day, start_time, end_time)


def _ensure_available(db: Session, slot: AppointmentSlot) -> None:
    for interval in intervals_on(db, slot.instructor_id, slot.date):
        if covers(interval.start_time, interval.end_time, slot.start, slot.end):
            return
    raise ValidationException('The instructor is not available during this time.', code='NotAvailable')


def _slot_locks(slot: AppointmentSlot) -> tuple[str, Optional[str]]:
    return (
        instructor_key(slot.instructor_id, slot.date),
        vehicle_key(slot.vehicle_id, slot.date) if slot.vehicle_id is not None else None,
    )


def create_appointment(
    db: Session,
    caller: Caller,
    file_id: int,
    day: date,
    start: str | time,
    end: str | time,
    now: Optional[datetime] = None,
) -> Appointment:
    now = now or datetime.now()
    file = get_file(db, file_id)
    ensure_can_book(caller, file)
    context = booking_context(file)
    slot = _validated_slot(context, day, start, end, now)

    with resource_locks(*_slot_locks(slot)):
        lock_resource_rows(db, slot.instructor_id, slot.vehicle_id)
        _ensure_available(db, slot)
        ensure_slot_free(db, slot)

        appointment = Appointment(file_id=file.id, date=slot.date, start_time=slot.start, end_time=slot.end)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)

    logger.info(
        'Booked appointment %s for file %s on %s %s-%s',
        appointment.id,
        file.id,
        slot.date,
        slot.start,
        slot.end,
    )
    return appointment


def update_appointment(
    db: Session,
    caller: Caller,
    appointment_id: int,
    day: date,
    start: str | time,
    end: str | time,
    now: Optional[datetime] = None,
) -> Appointment:
    now = now or datetime.now()
    appointment = get_appointment(db, appointment_id)
    ensure_can_book(caller, appointment.file)
    context = booking_context(appointment.file)
    slot = _validated_slot(context, day, start, end, now)

    with resource_locks(*_slot_locks(slot)):
        lock_resource_rows(db, slot.instructor_id, slot.vehicle_id)
        _ensure_available(db, slot)
        ensure_slot_free(db, slot, exclude_appointment_id=appointment.id)

        appointment.date = slot.date
        appointment.start_time = slot.start
        appointment.end_time = slot.end
        db.commit()
        db.refresh(appointment)

    logger.info('Moved appointment %s to %s %s-%s', appointment.id, slot.date, slot.start, slot.end)
    return appointment


def delete_appointment(
    db: Session,
    caller: Caller,
    appointment_id: int,
    now: Optional[datetime] = None,
) -> None:
    now = now or datetime.now()
    appointment = get_appointment(db, appointment_id)
    ensure_can_book(caller, appointment.file)

    if at(appointment.date, appointment.end_time) <= now:
        raise ValidationException('Past appointments cannot be deleted.', code='PastAppointment')

    keys = [instructor_key(appointment.file.instructor_id, appointment.date)] if appointment.file.instructor_id else []
    with resource_locks(*keys):
        lock_resource_rows(db, appointment.file.instructor_id)
        has_form = db.query(SessionForm.id).filter(SessionForm.appointment_id == appointment.id).first()
        if has_form is not None:
            raise ConflictException(
                'This appointment already has a session form and cannot be deleted.',
                code='HasSessionForm',
            )

        db.delete(appointment)
        db.commit()

    logger.info('Deleted appointment %s', appointment_id)


def list_for_file(db: Session, caller: Caller, file_id: int) -> list[Appointment]:
    file = get_file(db, file_id)
    ensure_can_view_file(caller, file)

    return db.query(Appointment).filter(Appointment.file_id == file.id).order_by(
        Appointment.date.asc(),
        Appointment.start_time.asc(),
    ).all()


def list_for_instructor(
    db: Session,
    caller: Caller,
    instructor_id: int,
    start_date: date,
    end_date: date,
) -> list[Appointment]:
    instructor = db.query(User).filter(User.id == instructor_id).first()
    if instructor is None:
        raise NotFoundException('Instructor not found.', code='NotFound')
    ensure_can_view_instructor(caller, instructor)

    if start_date > end_date:
        raise ValidationException('Start date must not be after end date.', code='BadDateRange')

    return db.query(Appointment).join(File, Appointment.file_id == File.id).filter(
        File.instructor_id == instructor_id,
        Appointment.date >= start_date,
        Appointment.date <= end_date,
    ).order_by(Appointment.date.asc(), Appointment.start_time.asc()).all()
