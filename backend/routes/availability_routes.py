from datetime import date

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_roles
from backend.core.timeslots import DayOfWeek, normalize_hhmm
from backend.database import database_unavailable, ensure_database_ready, get_db
from backend.models.user import Role, User
from backend.services.availability_service import AvailabilityService

router = APIRouter(tags=['availability'])

MAX_SLOTS_PER_DAY = 48


class TimeSlotPayload(BaseModel):
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_hhmm(value)


class UpdateAvailabilityRequest(BaseModel):
    slots: list[TimeSlotPayload] = Field(default_factory=list, max_length=MAX_SLOTS_PER_DAY)
    available: bool


class BulkDayPayload(UpdateAvailabilityRequest):
    day: DayOfWeek


class BulkUpdateAvailabilityRequest(BaseModel):
    availabilities: list[BulkDayPayload] = Field(min_length=1, max_length=len(DayOfWeek))


class CheckSlotRequest(BaseModel):
    professional_id: int
    date: date
    start_time: str
    end_time: str

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_hhmm(value)


class DayAvailabilityResponse(BaseModel):
    id: int | None = None
    professional_id: int
    day: str
    slots: list[TimeSlotPayload]
    available: bool

    class Config:
        from_attributes = True


class OpenSlotResponse(BaseModel):
    id: str
    professional_id: int
    professional_name: str
    date: date
    day: str
    start_time: str
    end_time: str

    class Config:
        from_attributes = True


class ProfessionalAvailabilityResponse(BaseModel):
    professional_id: int
    name: str
    days: list[DayAvailabilityResponse]

    class Config:
        from_attributes = True


class SlotCheckResponse(BaseModel):
    is_available: bool
    reason: str | None = None

    class Config:
        from_attributes = True


class InitializedResponse(BaseModel):
    is_initialized: bool
    count: int


@router.get('/slots/all', response_model=list[OpenSlotResponse])
def list_open_slots(
    on_date: date | None = Query(default=None, alias='date'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    professional_id: int | None = Query(default=None),
    day: DayOfWeek | None = Query(default=None),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityService(db).list_open_slots(
            on_date=on_date,
            date_from=date_from,
            date_to=date_to,
            professional_id=professional_id,
            day=day,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/professionals/all', response_model=list[ProfessionalAvailabilityResponse])
def list_professionals_with_availability(db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return AvailabilityService(db).list_professionals_with_availability()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/bulk/update', response_model=list[DayAvailabilityResponse])
def bulk_update_availability(
    data: BulkUpdateAvailabilityRequest,
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityService(db).bulk_replace(
            current_user.id,
            [
                (item.day, [(slot.start_time, slot.end_time) for slot in item.slots], item.available)
                for item in data.availabilities
            ],
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.post('/check-slot', response_model=SlotCheckResponse)
def check_slot(data: CheckSlotRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return AvailabilityService(db).check_slot_available(
            data.professional_id,
            data.date,
            data.start_time,
            data.end_time,
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/check-initialized/{professional_id}', response_model=InitializedResponse)
def check_initialized(professional_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return AvailabilityService(db).check_initialized(professional_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.post('/initialize', response_model=list[DayAvailabilityResponse], status_code=status.HTTP_201_CREATED)
def initialize_availability(
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityService(db).initialize_week(current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('/{professional_id}', response_model=list[DayAvailabilityResponse])
def get_availability(professional_id: int, db: Session = Depends(get_db)):
    ensure_database_ready()

    try:
        return AvailabilityService(db).get_availability(professional_id)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{day_id}', response_model=DayAvailabilityResponse)
def update_day_availability(
    day_id: int,
    data: UpdateAvailabilityRequest,
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityService(db).replace_day_slots(
            day_id,
            [(slot.start_time, slot.end_time) for slot in data.slots],
            data.available,
            current_user.id,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.delete('/{day_id}', response_model=DayAvailabilityResponse)
def clear_day_availability(
    day_id: int,
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AvailabilityService(db).clear_day(day_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
