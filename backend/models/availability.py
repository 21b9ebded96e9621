"""Availability model definitions."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from backend.database import Base


class Availability(Base):
    """One weekday of a professional's recurring schedule.

    ``slots`` holds ``{"start_time": "HH:MM", "end_time": "HH:MM"}`` windows
    sorted by start time.
    """
    __tablename__ = "availability"
    __table_args__ = (
        UniqueConstraint('professional_id', 'day', name='uq_availability_professional_day'),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(String, nullable=False)
    slots = Column(JSON, nullable=False, default=list)
    available = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))
    updated_at = Column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def windows(self) -> list[tuple[str, str]]:
        return [(slot['start_time'], slot['end_time']) for slot in (self.slots or [])]
