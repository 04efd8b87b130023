import os
from datetime import date, time

import pytest
from fastapi import HTTPException

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.routes.session_form_routes import (  # noqa: E402
    ExamFormResponse,
    SessionFormResponse,
    UpdateItemRequest,
    finalize_session_form,
    get_exam_form_for_category,
    get_file_mistake_stats,
    get_session_form,
    list_student_session_forms,
    start_session_form,
    update_session_form_item,
)


@pytest.fixture(autouse=True)
def database_ready(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr('backend.routes.session_form_routes.ensure_database_ready', lambda: None)


@pytest.fixture
def started(db, school, factory):
    appointment = factory.appointment(school.file, date(2099, 5, 15), time(9, 0), time(10, 0))
    return start_session_form(appointment_id=appointment.id, caller=school.instructor_caller, db=db)


def test_start_returns_open_form(started, school) -> None:
    response = SessionFormResponse.model_validate(started)

    assert response.is_locked is False
    assert response.exam_form_id == school.exam_form.id
    assert response.result is None


def test_full_evaluation_over_routes(db, school, started) -> None:
    item_id = school.items[2].id
    for _ in range(3):
        counted = update_session_form_item(
            form_id=started.id,
            data=UpdateItemRequest(id_item=item_id, delta=1),
            caller=school.instructor_caller,
            db=db,
        )
    assert (counted.id_item, counted.count) == (item_id, 3)

    finalized = finalize_session_form(form_id=started.id, caller=school.instructor_caller, db=db)
    assert (finalized.total_points, finalized.result, finalized.is_locked) == (24, 'FAILED', True)

    detail = get_session_form(form_id=started.id, caller=school.student_caller, db=db)
    assert [(entry.id_item, entry.count) for entry in detail.mistakes] == [(item_id, 3)]

    with pytest.raises(HTTPException) as exception_info:
        update_session_form_item(
            form_id=started.id,
            data=UpdateItemRequest(id_item=item_id, delta=-1),
            caller=school.instructor_caller,
            db=db,
        )
    assert exception_info.value.status_code == 423
    assert exception_info.value.detail['code'] == 'Locked'

    stats = get_file_mistake_stats(file_id=school.file.id, caller=school.instructor_caller, db=db)
    assert [point.total_points for point in stats.series] == [24]
    assert stats.heatmap.rows == [[3]]


def test_bad_delta_is_a_bad_request(db, school, started) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_session_form_item(
            form_id=started.id,
            data=UpdateItemRequest(id_item=school.items[0].id, delta=5),
            caller=school.instructor_caller,
            db=db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['code'] == 'BadDelta'


def test_second_start_conflicts(db, school, started) -> None:
    with pytest.raises(HTTPException) as exception_info:
        start_session_form(appointment_id=started.appointment_id, caller=school.instructor_caller, db=db)

    assert exception_info.value.status_code == 409
    assert exception_info.value.detail['code'] == 'AlreadyExists'


def test_student_listing_and_pagination_errors(db, school, started) -> None:
    page = list_student_session_forms(
        student_id=school.student.id,
        date_from=None,
        date_to=None,
        page=1,
        page_size=None,
        caller=school.student_caller,
        db=db,
    )
    assert (page.total, page.page_size) == (1, 20)
    assert page.items[0].id == started.id

    with pytest.raises(HTTPException) as exception_info:
        list_student_session_forms(
            student_id=school.student.id,
            date_from=None,
            date_to=None,
            page=1,
            page_size=500,
            caller=school.student_caller,
            db=db,
        )
    assert exception_info.value.status_code == 400
    assert exception_info.value.detail['code'] == 'BadPagination'


def test_exam_form_by_category(db, school) -> None:
    response = ExamFormResponse.model_validate(
        get_exam_form_for_category(category_id=school.category.id, _caller=school.student_caller, db=db)
    )

    assert response.max_points == 21
    assert [item.order_index for item in response.items] == [0, 1, 2]

    with pytest.raises(HTTPException) as exception_info:
        get_exam_form_for_category(category_id=999, _caller=school.student_caller, db=db)
    assert exception_info.value.status_code == 404
