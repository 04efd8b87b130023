from datetime import date, time

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_caller, get_db
from backend.auth.permissions import Caller
from backend.routes.errors import ensure_database_ready, service_errors
from backend.scheduling import availability_store
from backend.scheduling.interval_math import format_clock

router = APIRouter(tags=['instructor-availability'])


class AvailabilityRequest(BaseModel):
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def strip_clock(cls, value: str) -> str:
        return value.strip()


class AvailabilityResponse(BaseModel):
    id: int
    instructor_id: int
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time', mode='before')
    @classmethod
    def format_time(cls, value: time | str) -> str:
        if isinstance(value, time):
            return format_clock(value)
        return value

    class Config:
        from_attributes = True


@router.get('/{instructor_id}', response_model=list[AvailabilityResponse])
def list_availability(
    instructor_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return availability_store.list_future(db, caller, instructor_id)


@router.post('/{instructor_id}', response_model=AvailabilityResponse, status_code=status.HTTP_201_CREATED)
def create_availability(
    instructor_id: int,
    data: AvailabilityRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return availability_store.create_interval(
            db, caller, instructor_id, data.date, data.start_time, data.end_time
        )


@router.put('/{instructor_id}/{interval_id}', response_model=AvailabilityResponse)
def update_availability(
    instructor_id: int,
    interval_id: int,
    data: AvailabilityRequest,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        return availability_store.update_interval(
            db, caller, instructor_id, interval_id, data.date, data.start_time, data.end_time
        )


@router.delete('/{instructor_id}/{interval_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_availability(
    instructor_id: int,
    interval_id: int,
    caller: Caller = Depends(get_caller),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    with service_errors(db):
        availability_store.delete_interval(db, caller, instructor_id, interval_id)
