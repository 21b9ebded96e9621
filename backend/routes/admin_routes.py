from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import require_roles
from backend.core import config
from backend.database import database_unavailable, ensure_database_ready, get_db
from backend.models.booking import BookingStatus
from backend.models.user import Role, User
from backend.routes.booking_routes import BookingListResponse, to_list_response
from backend.services.admin_service import AdminService
from backend.services.booking_service import BookingService

router = APIRouter(tags=['admin'])


class UserCountsResponse(BaseModel):
    total: int
    active: int
    professionals: int


class BookingCountsResponse(BaseModel):
    total: int
    by_status: dict[str, int]


class DashboardStatsResponse(BaseModel):
    users: UserCountsResponse
    bookings: BookingCountsResponse
    pending_bookings: int
    utilization_rate: float


class ExpireBookingsResponse(BaseModel):
    cancelled: int
    completed: int


@router.get('/stats', response_model=DashboardStatsResponse)
def dashboard_stats(
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return AdminService(db).dashboard_stats()
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.get('/bookings', response_model=BookingListResponse)
def list_all_bookings(
    status_filter: BookingStatus | None = Query(default=None, alias='status'),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    professional_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=config.BOOKING_DEFAULT_PAGE_SIZE, ge=1, le=config.BOOKING_MAX_PAGE_SIZE),
    current_user: User = Depends(require_roles(Role.ADMIN)),
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


@router.post('/bookings/expire', response_model=ExpireBookingsResponse)
def expire_stale_bookings(
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return BookingService(db).expire_stale()
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
