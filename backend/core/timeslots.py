"""Wall-clock time window helpers shared by availability and bookings."""

import enum
import re
from datetime import date, datetime, time
from typing import Iterable

from backend.core.errors import ValidationFailed

TIME_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$')


class DayOfWeek(str, enum.Enum):
    MONDAY = 'Monday'
    TUESDAY = 'Tuesday'
    WEDNESDAY = 'Wednesday'
    THURSDAY = 'Thursday'
    FRIDAY = 'Friday'
    SATURDAY = 'Saturday'
    SUNDAY = 'Sunday'


# Indexed by date.weekday().
WEEK = list(DayOfWeek)


def day_of_week(value: date) -> DayOfWeek:
    return WEEK[value.weekday()]


def is_valid_hhmm(value: str) -> bool:
    return bool(TIME_PATTERN.match(value or ''))


def normalize_hhmm(value: str) -> str:
    """Return ``value`` as a zero-padded ``HH:MM`` string.

    Raises ``ValueError`` so pydantic validators can use it directly.
    """
    normalized = (value or '').strip()
    if not is_valid_hhmm(normalized):
        raise ValueError('Time must be in HH:MM format (e.g., 09:00).')
    hour, minute = normalized.split(':')
    return f'{int(hour):02d}:{minute}'


def parse_hhmm(value: str) -> str:
    try:
        return normalize_hhmm(value)
    except ValueError as exc:
        raise ValidationFailed(f'Invalid time "{value}". Use HH:MM (e.g., 09:00).') from exc


def to_minutes(value: str) -> int:
    hour, minute = value.split(':')
    return int(hour) * 60 + int(minute)


def to_time(value: str) -> time:
    hour, minute = value.split(':')
    return time(int(hour), int(minute))


def combine(day: date, value: str) -> datetime:
    return datetime.combine(day, to_time(value))


def intervals_overlap(start1: str, end1: str, start2: str, end2: str) -> bool:
    # Half-open [start, end): windows that only touch do not collide.
    return max(to_minutes(start1), to_minutes(start2)) < min(to_minutes(end1), to_minutes(end2))


def validate_window(start_time: str, end_time: str) -> tuple[str, str]:
    start = parse_hhmm(start_time)
    end = parse_hhmm(end_time)
    if to_minutes(end) <= to_minutes(start):
        raise ValidationFailed(f'End time must be after start time for slot {start}-{end}.')
    return start, end


def validate_slot_windows(windows: Iterable[tuple[str, str]]) -> list[tuple[str, str]]:
    """Normalize, check and sort a day's slot windows.

    Raises ``ValidationFailed`` for malformed times, empty windows and any
    pair of overlapping windows.
    """
    normalized = sorted(
        (validate_window(start, end) for start, end in windows),
        key=lambda window: to_minutes(window[0]),
    )

    # Sorted by start, so only neighbours can overlap.
    for previous, current in zip(normalized, normalized[1:]):
        if intervals_overlap(previous[0], previous[1], current[0], current[1]):
            raise ValidationFailed(
                f'Slots {previous[0]}-{previous[1]} and {current[0]}-{current[1]} overlap.'
            )

    return normalized
