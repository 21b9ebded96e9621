import logging
from threading import Lock

from fastapi import HTTPException, status
from sqlalchemy import create_engine, inspect, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker

from backend.core import config

logger = logging.getLogger(__name__)

DATABASE_URL = config.DATABASE_URL

engine = create_engine(DATABASE_URL, pool_pre_ping=True)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

_schema_lock = Lock()
_availability_schema_checked = False
_booking_schema_checked = False

ACTIVE_SLOT_INDEX_SQL = (
    'CREATE UNIQUE INDEX IF NOT EXISTS uq_bookings_active_slot '
    'ON bookings(professional_id, date, start_time, end_time) '
    "WHERE status IN ('Pending', 'Confirmed')"
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_availability_schema() -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(engine)

        if 'availability' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('availability')}
        migration_steps = [
            ('available', 'ALTER TABLE availability ADD COLUMN available BOOLEAN DEFAULT FALSE'),
            ('updated_at', 'ALTER TABLE availability ADD COLUMN updated_at TIMESTAMP'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding availability.%s column', column_name)
                    connection.execute(text(statement))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_availability_professional_day ON availability(professional_id, day)')
            )

        _availability_schema_checked = True


def ensure_booking_schema() -> None:
    global _booking_schema_checked

    if _booking_schema_checked:
        return

    with _schema_lock:
        if _booking_schema_checked:
            return

        inspector = inspect(engine)

        if 'bookings' not in inspector.get_table_names():
            _booking_schema_checked = True
            return

        existing_columns = {column['name'] for column in inspector.get_columns('bookings')}
        migration_steps = [
            ('cancellation_reason', 'ALTER TABLE bookings ADD COLUMN cancellation_reason VARCHAR'),
            ('reschedule_reason', 'ALTER TABLE bookings ADD COLUMN reschedule_reason VARCHAR'),
            ('meeting_link', 'ALTER TABLE bookings ADD COLUMN meeting_link VARCHAR'),
        ]

        with engine.begin() as connection:
            for column_name, statement in migration_steps:
                if column_name not in existing_columns:
                    logger.info('Adding bookings.%s column', column_name)
                    connection.execute(text(statement))
            connection.execute(text(ACTIVE_SLOT_INDEX_SQL))
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_professional_date ON bookings(professional_id, date)')
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_bookings_user_date ON bookings(user_id, date)')
            )

        _booking_schema_checked = True


def ensure_database_ready() -> None:
    try:
        ensure_availability_schema()
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        logger.exception('Schema check failed.')
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail='Database unavailable. Verify DATABASE_URL and database credentials.',
        ) from exc


def database_unavailable(exc: SQLAlchemyError) -> HTTPException:
    logger.exception('Database error while handling request.', exc_info=exc)
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail='Database unavailable. Verify DATABASE_URL and database credentials.',
    )
