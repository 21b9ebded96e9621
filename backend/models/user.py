"""User model definitions."""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String
from backend.database import Base


class Role(str, enum.Enum):
    USER = 'USER'
    PROFESSIONAL = 'PROFESSIONAL'
    ADMIN = 'ADMIN'
    SUPERADMIN = 'SUPERADMIN'


class UserStatus(str, enum.Enum):
    ACTIVE = 'Active'
    SUSPENDED = 'Suspended'


ADMIN_ROLES = frozenset({Role.ADMIN.value, Role.SUPERADMIN.value})


class User(Base):
    """Represents an application user: a client, a professional or an admin."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    name = Column(String, nullable=False, default='')
    hashed_password = Column(String, nullable=True)
    role = Column(String, nullable=False, default=Role.USER.value)
    status = Column(String, nullable=False, default=UserStatus.ACTIVE.value)
    created_at = Column(DateTime, default=lambda: datetime.now(timezone.utc))

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES

    @property
    def is_professional(self) -> bool:
        return self.role == Role.PROFESSIONAL.value
