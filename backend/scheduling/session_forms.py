"""
Per-appointment evaluation forms.

A form moves NotStarted -> Open -> Locked. While open, the owning instructor
records mistakes one tap at a time; finalizing scores the tally against the
exam form's penalty catalog and seals the record for good.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from backend.auth.permissions import (
    Caller,
    Role,
    ensure_can_view_file,
    ensure_can_view_student_history,
    ensure_file_instructor,
)
from backend.core import config
from backend.core.exceptions import (
    DuplicateException,
    LockedException,
    NotFoundException,
    ValidationException,
)
from backend.core.locks import resource_locks, session_form_key
from backend.models.appointment import Appointment
from backend.models.exam_form import ExamForm
from backend.models.file import File, TeachingCategory
from backend.models.session_form import SessionForm
from backend.models.user import User
from backend.scheduling.mistake_stats import FinalizedSession, MistakeStats, summarize
from backend.scheduling.mistakes import MistakeTally

logger = logging.getLogger(__name__)

RESULT_OK = 'OK'
RESULT_FAILED = 'FAILED'
ALLOWED_DELTAS = (1, -1)


@dataclass(frozen=True)
class MistakeBreakdown:
    id_item: int
    description: str
    count: int
    penalty_points: int


@dataclass(frozen=True)
class SessionFormView:
    id: int
    appointment_id: int
    appointment_date: date
    student_name: str
    instructor_name: str
    total_points: Optional[int]
    max_points: int
    result: Optional[str]
    is_locked: bool
    mistakes: list[MistakeBreakdown] = field(default_factory=list)


@dataclass(frozen=True)
class SessionFormSummary:
    id: int
    date: date
    total_points: Optional[int]
    max_points: int
    result: Optional[str]


@dataclass(frozen=True)
class SessionFormPage:
    page: int
    page_size: int
    total: int
    items: list[SessionFormSummary]


def score(tally: MistakeTally, exam_form: ExamForm) -> tuple[int, str]:
    penalties = {item.id: item.penalty_points for item in exam_form.items}
    total_points = tally.total_points(penalties)
    result = RESULT_FAILED if total_points > exam_form.max_points else RESULT_OK
    return total_points, result


def exam_form_for_license(db: Session, license_id: Optional[int]) -> Optional[ExamForm]:
    if license_id is None:
        return None
    return db.query(ExamForm).filter(ExamForm.license_id == license_id).first()


def exam_form_for_category(db: Session, category_id: int) -> ExamForm:
    category = db.query(TeachingCategory).filter(TeachingCategory.id == category_id).first()
    if category is None:
        raise NotFoundException('Teaching category not found.', code='NotFound')

    exam_form = exam_form_for_license(db, category.license_id)
    if exam_form is None:
        raise NotFoundException('Exam form not found for this category.', code='NoCategoryForm')
    return exam_form


def _get_form(db: Session, form_id: int, for_update: bool = False) -> SessionForm:
    query = db.query(SessionForm).filter(SessionForm.id == form_id)
    if for_update:
        query = query.populate_existing().with_for_update()
    form = query.first()
    if form is None or form.appointment is None or form.appointment.file is None:
        raise NotFoundException('Session form not found.', code='NotFound')
    return form


def _ensure_open(form: SessionForm, message: str) -> None:
    if form.is_locked:
        raise LockedException(message, code='Locked')


def _commit_form(db: Session, form: SessionForm) -> None:
    try:
        db.commit()
    except StaleDataError as exc:
        db.rollback()
        logger.warning('Session form %s was modified concurrently', form.id)
        raise DuplicateException(
            'The session form was modified by another request. Reload and try again.',
            code='ConcurrentModification',
        ) from exc


def start_session_form(
    db: Session,
    caller: Caller,
    appointment_id: int,
    now: Optional[datetime] = None,
) -> SessionForm:
    now = now or datetime.now(timezone.utc)
    appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
    if appointment is None or appointment.file is None:
        raise NotFoundException('Appointment not found.', code='NotFound')

    file = appointment.file
    ensure_file_instructor(caller, file)

    category = file.teaching_category
    exam_form = exam_form_for_license(db, category.license_id if category else None)
    if exam_form is None:
        raise NotFoundException('No exam form found for this teaching category.', code='NoCategoryForm')

    existing = db.query(SessionForm.id).filter(SessionForm.appointment_id == appointment.id).first()
    if existing is not None:
        raise DuplicateException('Session form already exists for this appointment.', code='AlreadyExists')

    form = SessionForm(
        appointment_id=appointment.id,
        exam_form_id=exam_form.id,
        mistakes=[],
        is_locked=False,
        created_at=now,
    )
    db.add(form)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateException('Session form already exists for this appointment.', code='AlreadyExists') from exc
    db.refresh(form)

    logger.info('Started session form %s for appointment %s', form.id, appointment.id)
    return form


def update_item(
    db: Session,
    caller: Caller,
    form_id: int,
    item_id: int,
    delta: int,
) -> int:
    """Apply ``delta`` to one item's mistake count and return the new count."""
    if delta not in ALLOWED_DELTAS:
        raise ValidationException('Delta must be +1 or -1.', code='BadDelta')

    with resource_locks(session_form_key(form_id)):
        form = _get_form(db, form_id, for_update=True)
        _ensure_open(form, 'Session form is locked and cannot be modified.')
        ensure_file_instructor(caller, form.appointment.file)

        if item_id not in {item.id for item in form.exam_form.items}:
            raise ValidationException(
                f'Item with id_item {item_id} does not exist in the exam form for this session.',
                code='UnknownItem',
            )

        tally = MistakeTally.from_records(form.mistakes)
        new_count = tally.apply(item_id, delta)
        form.mistakes = tally.to_records()
        _commit_form(db, form)

    logger.debug('Session form %s item %s -> %s', form_id, item_id, new_count)
    return new_count


def finalize(
    db: Session,
    caller: Caller,
    form_id: int,
    now: Optional[datetime] = None,
) -> SessionForm:
    now = now or datetime.now(timezone.utc)

    with resource_locks(session_form_key(form_id)):
        form = _get_form(db, form_id, for_update=True)
        _ensure_open(form, 'Session form is already finalized and locked.')
        ensure_file_instructor(caller, form.appointment.file)

        total_points, result = score(MistakeTally.from_records(form.mistakes), form.exam_form)
        form.total_points = total_points
        form.result = result
        form.is_locked = True
        form.finalized_at = now
        _commit_form(db, form)
        db.refresh(form)

    logger.info('Finalized session form %s: %s points, %s', form.id, total_points, result)
    return form


def get_session_form(db: Session, caller: Caller, form_id: int) -> SessionFormView:
    form = _get_form(db, form_id)
    file = form.appointment.file
    ensure_can_view_file(caller, file)

    catalog = {item.id: item for item in form.exam_form.items}
    breakdown = sorted(
        (
            MistakeBreakdown(
                id_item=item_id,
                description=catalog[item_id].description,
                count=count,
                penalty_points=catalog[item_id].penalty_points,
            )
            for item_id, count in MistakeTally.from_records(form.mistakes).items()
            if item_id in catalog
        ),
        key=lambda entry: entry.id_item,
    )

    return SessionFormView(
        id=form.id,
        appointment_id=form.appointment_id,
        appointment_date=form.appointment.date,
        student_name=file.student.full_name if file.student else '',
        instructor_name=file.instructor.full_name if file.instructor else '',
        total_points=form.total_points,
        max_points=form.exam_form.max_points,
        result=form.result,
        is_locked=form.is_locked,
        mistakes=breakdown,
    )


def _parse_date_filter(value: Optional[str], name: str) -> Optional[date]:
    if value is None or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError as exc:
        raise ValidationException(
            f"Invalid '{name}' date format. Use YYYY-MM-DD.",
            code='BadDateFilter',
        ) from exc


def list_for_student(
    db: Session,
    caller: Caller,
    student_id: int,
    date_from: Optional[str] = None,
    date_to: Optional[str] = None,
    page: int = 1,
    page_size: Optional[int] = None,
) -> SessionFormPage:
    page_size = config.SESSION_FORMS_DEFAULT_PAGE_SIZE if page_size is None else page_size
    if page < 1:
        raise ValidationException('Page must be at least 1.', code='BadPagination')
    if page_size < 1 or page_size > config.SESSION_FORMS_MAX_PAGE_SIZE:
        raise ValidationException(
            f'PageSize must be between 1 and {config.SESSION_FORMS_MAX_PAGE_SIZE}.',
            code='BadPagination',
        )

    student = db.query(User).filter(User.id == student_id).first()
    if student is None:
        raise NotFoundException('Student not found.', code='NotFound')

    instructs_student = caller.role is Role.INSTRUCTOR and db.query(File.id).filter(
        File.student_id == student_id,
        File.instructor_id == caller.user_id,
    ).first() is not None
    ensure_can_view_student_history(caller, student, instructs_student)

    start = _parse_date_filter(date_from, 'from')
    end = _parse_date_filter(date_to, 'to')

    query = db.query(SessionForm).join(Appointment, SessionForm.appointment_id == Appointment.id).join(
        File, Appointment.file_id == File.id
    ).filter(File.student_id == student_id)
    if start is not None:
        query = query.filter(Appointment.date >= start)
    if end is not None:
        query = query.filter(Appointment.date <= end)

    total = query.count()
    forms = query.order_by(Appointment.date.desc(), SessionForm.id.desc()).offset(
        (page - 1) * page_size
    ).limit(page_size).all()

    return SessionFormPage(
        page=page,
        page_size=page_size,
        total=total,
        items=[
            SessionFormSummary(
                id=form.id,
                date=form.appointment.date,
                total_points=form.total_points,
                max_points=form.exam_form.max_points,
                result=form.result,
            )
            for form in forms
        ],
    )


def finalized_forms_for_file(db: Session, caller: Caller, file_id: int) -> list[SessionForm]:
    """Locked forms of a file, oldest lesson first."""
    file = db.query(File).filter(File.id == file_id).first()
    if file is None:
        raise NotFoundException('File not found.', code='NotFound')
    ensure_can_view_file(caller, file)

    return db.query(SessionForm).join(Appointment, SessionForm.appointment_id == Appointment.id).filter(
        Appointment.file_id == file_id,
        SessionForm.is_locked.is_(True),
    ).order_by(Appointment.date.asc(), Appointment.start_time.asc(), SessionForm.id.asc()).all()


def stats_for_file(db: Session, caller: Caller, file_id: int) -> MistakeStats:
    sessions = [
        FinalizedSession(
            date=form.appointment.date,
            total_points=form.total_points or 0,
            tally=MistakeTally.from_records(form.mistakes),
            penalties={item.id: item.penalty_points for item in form.exam_form.items},
        )
        for form in finalized_forms_for_file(db, caller, file_id)
    ]
    return summarize(sessions)
