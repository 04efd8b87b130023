"""
Booking conflict detection.

Decides whether a candidate ``[start, end)`` on a date collides with a
committed appointment for the same instructor or the same vehicle. Both
resources are reached through the appointment's file.
"""

import logging
from dataclasses import dataclass
from datetime import date, time
from enum import Enum
from typing import Optional

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from backend.core.exceptions import ConflictException
from backend.models.appointment import Appointment
from backend.models.file import File
from backend.models.user import User
from backend.scheduling.interval_math import format_clock, overlaps

logger = logging.getLogger(__name__)


class ResourceKind(str, Enum):
    INSTRUCTOR = 'instructor'
    VEHICLE = 'vehicle'


@dataclass(frozen=True)
class AppointmentSlot:
    """The resources and time window a booking would occupy."""

    instructor_id: int
    vehicle_id: Optional[int]
    date: date
    start: time
    end: time

    @classmethod
    def for_file(cls, file: File, day: date, start: time, end: time) -> 'AppointmentSlot':
        return cls(
            instructor_id=file.instructor_id,
            vehicle_id=file.vehicle_id,
            date=day,
            start=start,
            end=end,
        )


def _resource_column(kind: ResourceKind):
    return File.instructor_id if kind is ResourceKind.INSTRUCTOR else File.vehicle_id


def appointments_for_resource(
    db: Session,
    kind: ResourceKind,
    resource_id: int,
    day: date,
    exclude_appointment_id: Optional[int] = None,
) -> list[Appointment]:
    query = db.query(Appointment).join(File, Appointment.file_id == File.id).filter(
        _resource_column(kind) == resource_id,
        Appointment.date == day,
    )
    if exclude_appointment_id is not None:
        query = query.filter(Appointment.id != exclude_appointment_id)
    return query.order_by(Appointment.start_time.asc()).all()


def find_conflicts(
    db: Session,
    kind: ResourceKind,
    resource_id: Optional[int],
    day: date,
    start: time,
    end: time,
    exclude_appointment_id: Optional[int] = None,
) -> list[Appointment]:
    if resource_id is None:
        return []

    return [
        appointment
        for appointment in appointments_for_resource(db, kind, resource_id, day, exclude_appointment_id)
        if overlaps(start, end, appointment.start_time, appointment.end_time)
    ]


def has_conflict(
    db: Session,
    kind: ResourceKind,
    resource_id: Optional[int],
    day: date,
    start: time,
    end: time,
    exclude_appointment_id: Optional[int] = None,
) -> bool:
    return bool(find_conflicts(db, kind, resource_id, day, start, end, exclude_appointment_id))


def slot_is_free(db: Session, slot: AppointmentSlot, exclude_appointment_id: Optional[int] = None) -> bool:
    if has_conflict(
        db, ResourceKind.INSTRUCTOR, slot.instructor_id, slot.date, slot.start, slot.end, exclude_appointment_id
    ):
        return False
    return not has_conflict(
        db, ResourceKind.VEHICLE, slot.vehicle_id, slot.date, slot.start, slot.end, exclude_appointment_id
    )


def ensure_slot_free(db: Session, slot: AppointmentSlot, exclude_appointment_id: Optional[int] = None) -> None:
    window = f'{slot.date.isoformat()} {format_clock(slot.start)}-{format_clock(slot.end)}'

    instructor_conflicts = find_conflicts(
        db, ResourceKind.INSTRUCTOR, slot.instructor_id, slot.date, slot.start, slot.end, exclude_appointment_id
    )
    if instructor_conflicts:
        logger.warning(
            'Instructor %s already booked on %s (appointments %s)',
            slot.instructor_id,
            window,
            [appointment.id for appointment in instructor_conflicts],
        )
        raise ConflictException(
            'The instructor already has an appointment during this time.',
            code='InstructorConflict',
            details={'appointment_ids': [appointment.id for appointment in instructor_conflicts]},
        )

    vehicle_conflicts = find_conflicts(
        db, ResourceKind.VEHICLE, slot.vehicle_id, slot.date, slot.start, slot.end, exclude_appointment_id
    )
    if vehicle_conflicts:
        logger.warning(
            'Vehicle %s already booked on %s (appointments %s)',
            slot.vehicle_id,
            window,
            [appointment.id for appointment in vehicle_conflicts],
        )
        raise ConflictException(
            'The vehicle is already booked during this time.',
            code='VehicleConflict',
            details={'appointment_ids': [appointment.id for appointment in vehicle_conflicts]},
        )


def resource_lock_statements(instructor_id: Optional[int], vehicle_id: Optional[int] = None) -> list[Select]:
    statements = []
    if instructor_id is not None:
        statements.append(select(User.id).where(User.id == instructor_id).with_for_update())
    if vehicle_id is not None:
        statements.append(
            select(File.id).where(File.vehicle_id == vehicle_id).order_by(File.id.asc()).with_for_update()
        )
    return statements


def lock_resource_rows(db: Session, instructor_id: Optional[int], vehicle_id: Optional[int] = None) -> None:
    """Take row locks that serialize bookings of these resources across processes.

    The instructor's user row stands for the instructor. A vehicle has no row
    of its own, so every file that drives it is locked, in id order. Backends
    without ``SELECT ... FOR UPDATE`` (SQLite) skip the clause and rely on the
    in-process locks alone. The locks are released by the caller's commit or
    rollback.
    """
    for statement in resource_lock_statements(instructor_id, vehicle_id):
        db.execute(statement).all()
