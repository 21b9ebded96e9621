from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user, require_roles
from backend.core import config
from backend.core.timeslots import normalize_hhmm
from backend.database import database_unavailable, ensure_database_ready, get_db
from backend.models.booking import BookingStatus, Modality
from backend.models.user import Role, User
from backend.services.booking_service import BookingService

router = APIRouter(tags=['booking'])

MAX_CONCERN_LENGTH = 1000
MAX_NOTES_LENGTH = 2000
MAX_REASON_LENGTH = 500


class CreateBookingRequest(BaseModel):
    professional_id: int
    date: date
    start_time: str
    end_time: str
    modality: Modality
    concern: str = Field(max_length=MAX_CONCERN_LENGTH)
    notes: str | None = Field(default=None, max_length=MAX_NOTES_LENGTH)

    @field_validator('start_time', 'end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_hhmm(value)

    @field_validator('concern')
    @classmethod
    def validate_concern(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Please describe your concern.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


class CancelBookingRequest(BaseModel):
    reason: str = Field(max_length=MAX_REASON_LENGTH)

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('A cancellation reason is required.')
        return normalized


class RescheduleBookingRequest(BaseModel):
    new_date: date
    new_start_time: str
    new_end_time: str
    reason: str | None = Field(default=None, max_length=MAX_REASON_LENGTH)

    @field_validator('new_start_time', 'new_end_time')
    @classmethod
    def validate_time(cls, value: str) -> str:
        return normalize_hhmm(value)


class BookingResponse(BaseModel):
    id: int
    user_id: int
    professional_id: int
    date: date
    start_time: str
    end_time: str
    modality: str
    concern: str
    notes: str | None = None
    status: str
    cancellation_reason: str | None = None
    reschedule_reason: str | None = None
    meeting_link: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class BookingListResponse(BaseModel):
    data: list[BookingResponse]
    pagination: PaginationResponse


def to_list_response(page) -> BookingListResponse:
    return BookingListResponse(
        data=[BookingResponse.model_validate(booking) for booking in page.data],
        pagination=PaginationResponse(
            page=page.page,
            limit=page.limit,
            total=page.total,
            total_pages=page.total_pages,
        ),
    )


@router.post('', response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).create(
            user_id=current_user.id,
            professional_id=data.professional_id,
            on_date=data.date,
            start_time=data.start_time,
            end_time=data.end_time,
            modality=data.modality.value,
            concern=data.concern,
            notes=data.notes,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.get('', response_model=BookingListResponse)
def list_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias='status'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    professional_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.BOOKING_DEFAULT_PAGE_SIZE, ge=1, le=config.BOOKING_MAX_PAGE_SIZE),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        result = BookingService(db).list_bookings(
            current_user,
            status=status_filter.value if status_filter else None,
            date_from=date_from,
            date_to=date_to,
            professional_id=professional_id,
            user_id=user_id,
            page=page,
            limit=limit,
        )
        return to_list_response(result)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/{booking_id}', response_model=BookingResponse)
def get_booking(
    booking_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).get(booking_id, current_user)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}/confirm', response_model=BookingResponse)
def confirm_booking(
    booking_id: int,
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).confirm(booking_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}/cancel', response_model=BookingResponse)
def cancel_booking(
    booking_id: int,
    data: CancelBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).cancel(booking_id, current_user.id, data.reason)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}/complete', response_model=BookingResponse)
def complete_booking(
    booking_id: int,
    current_user: User = Depends(require_roles(Role.PROFESSIONAL)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).complete(booking_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc


@router.put('/{booking_id}/reschedule', response_model=BookingResponse)
def reschedule_booking(
    booking_id: int,
    data: RescheduleBookingRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).reschedule(
            booking_id,
            current_user.id,
            data.new_date,
            data.new_start_time,
            data.new_end_time,
            reason=data.reason,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
