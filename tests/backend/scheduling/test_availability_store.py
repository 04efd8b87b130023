from datetime import date, datetime, time

import pytest

from backend.core.exceptions import ConflictException, ForbiddenException, NotFoundException, ValidationException
from backend.models.availability import Availability
from backend.scheduling import availability_store

LESSON_DAY = date(2099, 5, 15)
NOW = datetime(2099, 5, 1, 8, 0)


def test_create_interval_parses_times_and_persists(db, school) -> None:
    interval = availability_store.create_interval(
        db, school.instructor_caller, school.instructor.id, LESSON_DAY, '09:00', '12:00', now=NOW
    )

    assert interval.id is not None
    assert (interval.start_time, interval.end_time) == (time(9, 0), time(12, 0))


@pytest.mark.parametrize(
    ('day', 'start', 'end', 'code'),
    [
        (LESSON_DAY, '12:00', '09:00', 'InvalidRange'),
        (LESSON_DAY, '09:00', '09:00', 'InvalidRange'),
        (LESSON_DAY, '9am', '12:00', 'BadTimeFormat'),
        (date(2099, 4, 30), '09:00', '12:00', 'PastDate'),
    ],
)
def test_create_interval_rejects_invalid_windows(db, school, day, start, end, code) -> None:
    with pytest.raises(ValidationException) as exception_info:
        availability_store.create_interval(
            db, school.instructor_caller, school.instructor.id, day, start, end, now=NOW
        )

    assert exception_info.value.code == code
    assert db.query(Availability).count() == 0


def test_create_interval_rejects_overlap_but_allows_touching(db, school, factory) -> None:
    factory.availability(school.instructor, LESSON_DAY, time(9, 0), time(12, 0))

    with pytest.raises(ConflictException) as exception_info:
        availability_store.create_interval(
            db, school.instructor_caller, school.instructor.id, LESSON_DAY, '11:00', '13:00', now=NOW
        )
    assert exception_info.value.code == 'Overlap'

    availability_store.create_interval(
        db, school.instructor_caller, school.instructor.id, LESSON_DAY, '12:00', '14:00', now=NOW
    )
    assert db.query(Availability).count() == 2


def test_create_interval_checks_the_caller(db, school) -> None:
    with pytest.raises(ForbiddenException):
        availability_store.create_interval(
            db, school.other_instructor_caller, school.instructor.id, LESSON_DAY, '09:00', '12:00', now=NOW
        )

    availability_store.create_interval(
        db, school.admin_caller, school.instructor.id, LESSON_DAY, '09:00', '12:00', now=NOW
    )


def test_create_interval_for_unknown_instructor(db, school) -> None:
    with pytest.raises(NotFoundException):
        availability_store.create_interval(db, school.admin_caller, 999, LESSON_DAY, '09:00', '12:00', now=NOW)


def test_list_future_skips_past_dates_and_orders(db, school, factory) -> None:
    factory.availability(school.instructor, date(2099, 4, 20), time(9, 0), time(10, 0))
    later = factory.availability(school.instructor, date(2099, 5, 2), time(9, 0), time(10, 0))
    first = factory.availability(school.instructor, date(2099, 5, 1), time(14, 0), time(15, 0))

    intervals = availability_store.list_future(db, school.instructor_caller, school.instructor.id, now=NOW)

    assert [interval.id for interval in intervals] == [first.id, later.id]


def test_update_interval_ignores_itself_when_checking_overlap(db, school, factory) -> None:
    interval = factory.availability(school.instructor, LESSON_DAY, time(9, 0), time(12, 0))

    updated = availability_store.update_interval(
        db, school.instructor_caller, school.instructor.id, interval.id, LESSON_DAY, '10:00', '13:00', now=NOW
    )

    assert (updated.start_time, updated.end_time) == (time(10, 0), time(13, 0))


def test_update_interval_is_blocked_by_bookings(db, school, factory) -> None:
    interval = factory.availability(school.instructor, LESSON_DAY, time(9, 0), time(12, 0))
    factory.appointment(school.file, LESSON_DAY, time(10, 0), time(11, 0))

    with pytest.raises(ConflictException) as exception_info:
        availability_store.update_interval(
            db, school.instructor_caller, school.instructor.id, interval.id, LESSON_DAY, '08:00', '12:00', now=NOW
        )

    assert exception_info.value.code == 'HasBookings'


def test_update_interval_of_another_instructor_is_not_found(db, school, factory) -> None:
    interval = factory.availability(school.other_instructor, LESSON_DAY, time(9, 0), time(12, 0))

    with pytest.raises(NotFoundException):
        availability_store.update_interval(
            db, school.admin_caller, school.instructor.id, interval.id, LESSON_DAY, '09:00', '10:00', now=NOW
        )


def test_delete_interval(db, school, factory) -> None:
    interval = factory.availability(school.instructor, LESSON_DAY, time(9, 0), time(12, 0))

    availability_store.delete_interval(db, school.instructor_caller, school.instructor.id, interval.id, now=NOW)

    assert db.query(Availability).count() == 0


def test_delete_interval_rejects_past_and_booked_intervals(db, school, factory) -> None:
    past = factory.availability(school.instructor, date(2099, 4, 20), time(9, 0), time(12, 0))
    booked = factory.availability(school.instructor, LESSON_DAY, time(9, 0), time(12, 0))
    factory.appointment(school.file, LESSON_DAY, time(11, 0), time(12, 0))

    with pytest.raises(ValidationException) as past_error:
        availability_store.delete_interval(db, school.instructor_caller, school.instructor.id, past.id, now=NOW)
    with pytest.raises(ConflictException) as booked_error:
        availability_store.delete_interval(db, school.instructor_caller, school.instructor.id, booked.id, now=NOW)

    assert past_error.value.code == 'PastDate'
    assert booked_error.value.code == 'HasBookings'
    assert db.query(Availability).count() == 2
