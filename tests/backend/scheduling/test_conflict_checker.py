from datetime import date, time

import pytest

from sqlalchemy.dialects import postgresql

from backend.auth.permissions import Role
from backend.core.exceptions import ConflictException
from backend.scheduling.conflict_checker import (
    AppointmentSlot,
    ResourceKind,
    ensure_slot_free,
    find_conflicts,
    lock_resource_rows,
    resource_lock_statements,
    slot_is_free,
)

LESSON_DAY = date(2099, 5, 15)


@pytest.fixture
def booked(school, factory):
    """Ivan and vehicle 7 are busy 10:00-11:00; a second student drives vehicle 8 with Olga."""
    appointment = factory.appointment(school.file, LESSON_DAY, time(10, 0), time(11, 0))
    other_student = factory.user(Role.STUDENT, 'Petar')
    other_file = factory.file(other_student, school.other_instructor, school.category, vehicle_id=8)
    return appointment, other_file


def test_find_conflicts_matches_overlaps_only(db, school, booked) -> None:
    appointment, _ = booked

    assert [a.id for a in find_conflicts(
        db, ResourceKind.INSTRUCTOR, school.instructor.id, LESSON_DAY, time(10, 30), time(11, 30)
    )] == [appointment.id]
    assert find_conflicts(db, ResourceKind.INSTRUCTOR, school.instructor.id, LESSON_DAY, time(11, 0), time(12, 0)) == []
    assert find_conflicts(db, ResourceKind.INSTRUCTOR, school.instructor.id, date(2099, 5, 16), time(10, 0), time(11, 0)) == []
    assert find_conflicts(db, ResourceKind.VEHICLE, None, LESSON_DAY, time(10, 0), time(11, 0)) == []


def test_find_conflicts_can_exclude_the_appointment_being_moved(db, school, booked) -> None:
    appointment, _ = booked

    assert find_conflicts(
        db,
        ResourceKind.INSTRUCTOR,
        school.instructor.id,
        LESSON_DAY,
        time(10, 30),
        time(11, 30),
        exclude_appointment_id=appointment.id,
    ) == []


def test_ensure_slot_free_reports_instructor_first(db, school, booked) -> None:
    appointment, _ = booked
    slot = AppointmentSlot.for_file(school.file, LESSON_DAY, time(10, 30), time(11, 30))

    with pytest.raises(ConflictException) as exception_info:
        ensure_slot_free(db, slot)

    assert exception_info.value.code == 'InstructorConflict'
    assert exception_info.value.details == {'appointment_ids': [appointment.id]}


def test_ensure_slot_free_detects_shared_vehicle(db, school, booked) -> None:
    _, other_file = booked
    slot = AppointmentSlot(
        instructor_id=school.other_instructor.id,
        vehicle_id=7,
        date=LESSON_DAY,
        start=time(10, 0),
        end=time(11, 0),
    )

    with pytest.raises(ConflictException) as exception_info:
        ensure_slot_free(db, slot)

    assert exception_info.value.code == 'VehicleConflict'
    assert slot_is_free(db, AppointmentSlot.for_file(other_file, LESSON_DAY, time(10, 0), time(11, 0)))


def test_resource_lock_statements_lock_instructor_and_vehicle_rows() -> None:
    compiled = [str(statement.compile(dialect=postgresql.dialect())) for statement in resource_lock_statements(3, 7)]

    assert len(compiled) == 2
    assert all(sql.endswith('FOR UPDATE') for sql in compiled)
    assert 'FROM users' in compiled[0]
    assert 'FROM files' in compiled[1] and 'ORDER BY files.id ASC' in compiled[1]
    assert len(resource_lock_statements(3)) == 1
    assert resource_lock_statements(None, None) == []


def test_lock_resource_rows_runs_on_backends_without_row_locks(db, school) -> None:
    lock_resource_rows(db, school.instructor.id, 7)
    db.rollback()
