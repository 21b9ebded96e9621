import os

from dotenv import load_dotenv

load_dotenv()


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./soro.db")

CORS_ALLOWED_ORIGINS = _get_list(os.getenv("CORS_ALLOWED_ORIGINS"), ["http://localhost:3000"])

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

BOOKING_DEFAULT_PAGE_SIZE = int(os.getenv("BOOKING_DEFAULT_PAGE_SIZE", "10"))
BOOKING_MAX_PAGE_SIZE = int(os.getenv("BOOKING_MAX_PAGE_SIZE", "100"))

SLOT_QUERY_DEFAULT_DAYS = int(os.getenv("SLOT_QUERY_DEFAULT_DAYS", "7"))
SLOT_QUERY_MAX_DAYS = int(os.getenv("SLOT_QUERY_MAX_DAYS", "31"))

MEETING_BASE_URL = os.getenv("MEETING_BASE_URL", "https://meet.jit.si").rstrip("/")
MEETING_ROOM_PREFIX = os.getenv("MEETING_ROOM_PREFIX", "soro-session")

AUTO_COMPLETE_GRACE_MINUTES = int(os.getenv("AUTO_COMPLETE_GRACE_MINUTES", "60"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if BOOKING_DEFAULT_PAGE_SIZE > BOOKING_MAX_PAGE_SIZE:
        raise RuntimeError("BOOKING_DEFAULT_PAGE_SIZE cannot exceed BOOKING_MAX_PAGE_SIZE.")
