from datetime import date, datetime, time

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_caller, get_db
from backend.auth.permissions import Caller
from backend.models.appointment import Appointment
from backend.routes.errors import ensure_database_ready, service_errors
from backend.scheduling import appointment_ledger, slot_planner
from backend.scheduling.interval_math import format_clock

router = APIRouter(tags=['appointments'])


def _clock(value: time | str) -> str:
    if isinstance(value, time):
        return format_clock(value)
    return value


class SlotResponse(BaseModel):
    start_time: str
    end_time: str


class AvailableSlotsResponse(BaseModel):
    file_id: int
    date: date
    session_duration: int
    slots: list[SlotResponse]


class CreateAppointmentRequest(BaseModel):
    file_id: int
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_clock(cls, value: str) -> str:
        return value.strip()


class UpdateAppointmentRequest(BaseModel):
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_clock(cls, value: str) -> str:
        return value.strip()


class AppointmentResponse(BaseModel):
    id: int
    file_id: int
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def format_time(cls, value: time | str) -> str:
        return _clock(value)

    class Config:
        from_attributes = True


class AppointmentListItemResponse(AppointmentResponse):
    status: str
    student_name: str | None = None


def to_list_item(appointment: Appointment, now: datetime) -> AppointmentListItemResponse:
    student = appointment.file.student if appointment.file else None
    return AppointmentListItemResponse(
        id=appointment.id,
        file_id=appointment.file_id,
        date=appointment.date,
        start_time=_clock(appointment.start_time),
        end_time=_clock(appointment.end_time),
        status=appointment_ledger.appointment_status(appointment, now),
        student_name=student.full_name if student else None,
    )


@router.get('/files/{file_id}/available-slots', response_model=AvailableSlotsResponse)
def list_available_slots(
    file_id: int,
    slot_date: date = Query(..., alias='date'),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        session_duration, slots = slot_planner.slots_for_file(db, caller, file_id, slot_date)

    return AvailableSlotsResponse(
        file_id=file_id,
        date=slot_date,
        session_duration=session_duration,
        slots=[SlotResponse(start_time=_clock(slot.start), end_time=_clock(slot.end)) for slot in slots],
    )


@router.post('/appointments', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return appointment_ledger.create_appointment(
            db, caller, data.file_id, data.date, data.start_time, data.end_time
        )


@router.put('/appointments/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return appointment_ledger.update_appointment(
            db, caller, appointment_id, data.date, data.start_time, data.end_time
        )


@router.delete('/appointments/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_appointment(
    appointment_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        appointment_ledger.delete_appointment(db, caller, appointment_id)


@router.get('/files/{file_id}/appointments', response_model=list[AppointmentListItemResponse])
def list_file_appointments(
    file_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        appointments = appointment_ledger.list_for_file(db, caller, file_id)
        now = datetime.now()
        return [to_list_item(appointment, now) for appointment in appointments]


@router.get('/instructors/{instructor_id}/appointments', response_model=list[AppointmentListItemResponse])
def list_instructor_appointments(
    instructor_id: int,
    start_date: date = Query(...),
    end_date: date = Query(...),
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        appointments = appointment_ledger.list_for_instructor(db, caller, instructor_id, start_date, end_date)
        now = datetime.now()
        return [to_list_item(appointment, now) for appointment in appointments]
