from dataclasses import asdict
from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_caller, get_db
from backend.auth.permissions import Caller
from backend.routes.errors import ensure_database_ready, service_errors
from backend.scheduling import session_forms

router = APIRouter(tags=['session-forms'])


class UpdateItemRequest(BaseModel):
    id_item: int
    delta: int


class UpdateItemResponse(BaseModel):
    id_item: int
    count: int


class SessionFormResponse(BaseModel):
    id: int
    appointment_id: int
    exam_form_id: int
    is_locked: bool
    created_at: datetime
    finalized_at: datetime | None = None
    total_points: int | None = None
    result: str | None = None

    class Config:
        from_attributes = True


class MistakeBreakdownResponse(BaseModel):
    id_item: int
    description: str
    count: int
    penalty_points: int


class SessionFormDetailResponse(BaseModel):
    id: int
    appointment_id: int
    appointment_date: date
    student_name: str
    instructor_name: str
    total_points: int | None = None
    max_points: int
    result: str | None = None
    is_locked: bool
    mistakes: list[MistakeBreakdownResponse]


class SessionFormSummaryResponse(BaseModel):
    id: int
    date: date
    total_points: int | None = None
    max_points: int
    result: str | None = None


class SessionFormPageResponse(BaseModel):
    page: int
    page_size: int
    total: int
    items: list[SessionFormSummaryResponse]


class SeriesPointResponse(BaseModel):
    date: date
    total_points: int
    top_mistake_item: int | None = None


class HeatmapResponse(BaseModel):
    item_ids: list[int]
    rows: list[list[int]]


class MistakeStatsResponse(BaseModel):
    series: list[SeriesPointResponse]
    heatmap: HeatmapResponse
    moving_average: list[float]
    trend: str


class ExamItemResponse(BaseModel):
    id: int
    description: str
    penalty_points: int
    order_index: int

    class Config:
        from_attributes = True


class ExamFormResponse(BaseModel):
    id: int
    license_id: int
    max_points: int
    items: list[ExamItemResponse]

    class Config:
        from_attributes = True


@router.post(
    '/session-forms/{appointment_id}/form/start',
    response_model=SessionFormResponse,
    status_code=status.HTTP_201_CREATED,
)
def start_session_form(
    appointment_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return session_forms.start_session_form(db, caller, appointment_id)


@router.patch('/session-forms/{form_id}/update-item', response_model=UpdateItemResponse)
def update_session_form_item(
    form_id: int,
    data: UpdateItemRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        count = session_forms.update_item(db, caller, form_id, data.id_item, data.delta)

    return UpdateItemResponse(id_item=data.id_item, count=count)


@router.post('/session-forms/{form_id}/finalize', response_model=SessionFormResponse)
def finalize_session_form(
    form_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return session_forms.finalize(db, caller, form_id)


@router.get('/session-forms/{form_id}', response_model=SessionFormDetailResponse)
def get_session_form(
    form_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        view = session_forms.get_session_form(db, caller, form_id)

    return SessionFormDetailResponse(**asdict(view))


@router.get('/students/{student_id}/session-forms', response_model=SessionFormPageResponse)
def list_student_session_forms(
    student_id: int,
    date_from: str | None = Query(default=None, alias='from'),
    date_to: str | None = Query(default=None, alias='to'),
    page: int = Query(default=1),
    page_size: int | None = Query(default=None, alias='pageSize'),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        result = session_forms.list_for_student(
            db,
            caller,
            student_id,
            date_from=date_from,
            date_to=date_to,
            page=page,
            page_size=page_size,
        )

    return SessionFormPageResponse(**asdict(result))


@router.get('/files/{file_id}/session-forms/stats', response_model=MistakeStatsResponse)
def get_file_mistake_stats(
    file_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        stats = session_forms.stats_for_file(db, caller, file_id)

    return MistakeStatsResponse(
        series=[SeriesPointResponse(**asdict(point)) for point in stats.series],
        heatmap=HeatmapResponse(item_ids=stats.heatmap.item_ids, rows=stats.heatmap.rows),
        moving_average=stats.moving_average,
        trend=stats.trend,
    )


@router.get('/forms/by-category/{category_id}', response_model=ExamFormResponse)
def get_exam_form_for_category(
    category_id: int,
    _caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return session_forms.exam_form_for_category(db, category_id)
