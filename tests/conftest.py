import itertools
import os
from datetime import datetime

os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from backend.core.timeslots import DayOfWeek  # noqa: E402
from backend.database import Base  # noqa: E402
from backend.models import availability, booking, notification  # noqa: E402,F401
from backend.models.user import Role, User, UserStatus  # noqa: E402
from backend.services.availability_service import AvailabilityService  # noqa: E402

# Sunday 6 January 2030, 08:00. Monday 7 January 2030 is the first bookable weekday.
FIXED_NOW = datetime(2030, 1, 6, 8, 0)


@pytest.fixture
def db():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make_user(role: Role = Role.USER, name: str | None = None, status: UserStatus = UserStatus.ACTIVE) -> User:
        number = next(counter)
        user = User(
            email=f'{role.value.lower()}{number}@example.com',
            name=name or f'{role.value.title()} {number}',
            role=role.value,
            status=status.value,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def professional(make_user) -> User:
    return make_user(Role.PROFESSIONAL, name='Dr. Ada')


@pytest.fixture
def client_user(make_user) -> User:
    return make_user(Role.USER, name='Sam')


@pytest.fixture
def schedule(db, clock):
    """Open ``windows`` on ``day`` for a professional, initializing the week first if needed."""

    def _schedule(professional: User, day: DayOfWeek, windows: list[tuple[str, str]], available: bool = True):
        service = AvailabilityService(db, now=clock)
        if not service.check_initialized(professional.id)['is_initialized']:
            service.initialize_week(professional.id)

        record = next(
            record for record in service.get_availability(professional.id) if record.day == day.value
        )
        return service.replace_day_slots(record.id, windows, available, professional.id)

    return _schedule
