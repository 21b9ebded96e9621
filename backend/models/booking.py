"""Booking model definitions."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, String, Text, text
from sqlalchemy.orm import relationship
from backend.database import Base


class BookingStatus(str, enum.Enum):
    PENDING = 'Pending'
    CONFIRMED = 'Confirmed'
    COMPLETED = 'Completed'
    CANCELLED = 'Cancelled'
    RESCHEDULED = 'Rescheduled'


class Modality(str, enum.Enum):
    VIDEO = 'Video'
    AUDIO = 'Audio'


# Statuses that occupy the professional's time window.
ACTIVE_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)

_ACTIVE_WHERE = text("status IN ('Pending', 'Confirmed')")


class Booking(Base):
    """A reservation of one time window between a user and a professional."""
    __tablename__ = "bookings"
    __table_args__ = (
        Index(
            'uq_bookings_active_slot',
            'professional_id',
            'date',
            'start_time',
            'end_time',
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
        Index('idx_bookings_professional_date', 'professional_id', 'date'),
        Index('idx_bookings_user_date', 'user_id', 'date'),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    professional_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    date = Column(Date, nullable=False)
    start_time = Column(String(5), nullable=False)
    end_time = Column(String(5), nullable=False)
    modality = Column(String, nullable=False, default=Modality.VIDEO.value)
    concern = Column(Text, nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String, nullable=False, default=BookingStatus.PENDING.value)
    cancellation_reason = Column(String, nullable=True)
    reschedule_reason = Column(String, nullable=True)
    meeting_link = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    user = relationship("User", foreign_keys=[user_id])
    professional = relationship("User", foreign_keys=[professional_id])

    def involves(self, user_id: int) -> bool:
        return user_id in (self.user_id, self.professional_id)
