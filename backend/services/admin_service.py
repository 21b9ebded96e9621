"""Read-only dashboard aggregates over users, bookings and availability."""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.core import config
from backend.models.booking import Booking, BookingStatus
from backend.models.user import Role, User, UserStatus
from backend.services.availability_service import AvailabilityService


class AdminService:
    def __init__(self, db: Session, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or datetime.now

    def user_counts(self) -> dict:
        return {
            'total': self.db.query(User).count(),
            'active': self.db.query(User).filter(User.status == UserStatus.ACTIVE.value).count(),
            'professionals': self.db.query(User).filter(User.role == Role.PROFESSIONAL.value).count(),
        }

    def booking_counts(self) -> dict:
        rows = self.db.query(Booking.status, func.count(Booking.id)).group_by(Booking.status).all()
        by_status = {status.value: 0 for status in BookingStatus}
        by_status.update({status: count for status, count in rows})
        return {'total': sum(by_status.values()), 'by_status': by_status}

    def utilization_rate(self, start: Optional[date] = None, days: Optional[int] = None) -> float:
        """Share of upcoming offered windows that an active booking occupies."""
        start = start or self._now().date()
        days = days or config.SLOT_QUERY_DEFAULT_DAYS
        dates = [start + timedelta(days=offset) for offset in range(days)]

        windows = AvailabilityService(self.db, now=self._now).collect_windows(dates)
        if not windows:
            return 0.0
        taken = sum(1 for window in windows if window.taken)
        return round(taken / len(windows), 4)

    def dashboard_stats(self) -> dict:
        bookings = self.booking_counts()
        return {
            'users': self.user_counts(),
            'bookings': bookings,
            'pending_bookings': bookings['by_status'][BookingStatus.PENDING.value],
            'utilization_rate': self.utilization_rate(),
        }
