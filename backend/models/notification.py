"""Notification model definitions."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from backend.database import Base


class NotificationType(str, enum.Enum):
    BOOKING_REQUEST = 'BookingRequest'
    BOOKING_CONFIRMED = 'BookingConfirmed'
    BOOKING_CANCELLED = 'BookingCancelled'
    BOOKING_RESCHEDULED = 'BookingRescheduled'
    BOOKING_COMPLETED = 'BookingCompleted'


class Notification(Base):
    """An in-app message about a booking state change."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True)
    recipient_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="SET NULL"), nullable=True)
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
