"""Professional weekly availability and the open-slot query built on it."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Callable, Iterable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from backend.core.timeslots import (
    WEEK,
    DayOfWeek,
    combine,
    day_of_week,
    intervals_overlap,
    validate_slot_windows,
    validate_window,
)
from backend.models.availability import Availability
from backend.models.booking import ACTIVE_STATUSES, Booking
from backend.models.user import Role, User, UserStatus

logger = logging.getLogger(__name__)


@dataclass
class DayRecord:
    id: Optional[int]
    professional_id: int
    day: str
    slots: list[dict] = field(default_factory=list)
    available: bool = False


@dataclass
class OpenSlot:
    id: str
    professional_id: int
    professional_name: str
    date: date
    day: str
    start_time: str
    end_time: str


@dataclass
class SlotWindow:
    professional: User
    date: date
    start_time: str
    end_time: str
    taken: bool


@dataclass
class SlotCheck:
    is_available: bool
    reason: Optional[str] = None


@dataclass
class ProfessionalAvailability:
    professional_id: int
    name: str
    days: list[DayRecord] = field(default_factory=list)


def _slot_dicts(windows: Iterable[tuple[str, str]]) -> list[dict]:
    return [{'start_time': start, 'end_time': end} for start, end in windows]


class AvailabilityService:
    def __init__(self, db: Session, now: Optional[Callable[[], datetime]] = None):
        self.db = db
        self._now = now or datetime.now

    # Availability store

    def _get_professional(self, professional_id: int) -> User:
        professional = self.db.query(User).filter(User.id == professional_id).first()
        if professional is None or not professional.is_professional:
            raise NotFound('Professional not found.')
        return professional

    def _get_owned_day(self, day_id: int, acting_professional_id: int) -> Availability:
        record = self.db.query(Availability).filter(Availability.id == day_id).first()
        if record is None:
            raise NotFound('Availability record not found.')
        if record.professional_id != acting_professional_id:
            raise Forbidden('Not authorized to update this availability.')
        return record

    def check_initialized(self, professional_id: int) -> dict:
        count = self.db.query(Availability).filter(Availability.professional_id == professional_id).count()
        return {'is_initialized': count > 0, 'count': count}

    def initialize_week(self, professional_id: int) -> list[Availability]:
        user = self.db.query(User).filter(User.id == professional_id).first()
        if user is None:
            raise NotFound('Professional not found.')
        if not user.is_professional:
            raise Forbidden('Only professionals can set availability.')

        existing = self.db.query(Availability).filter(Availability.professional_id == professional_id).first()
        if existing:
            raise Conflict('Availability already initialized.')

        records = [
            Availability(professional_id=professional_id, day=day.value, slots=[], available=False)
            for day in WEEK
        ]
        self.db.add_all(records)
        try:
            self.db.commit()
        except IntegrityError as exc:
            # Another request initialized the same week first.
            self.db.rollback()
            raise Conflict('Availability already initialized.') from exc

        for record in records:
            self.db.refresh(record)
        logger.info('Initialized weekly availability for professional %s', professional_id)
        return records

    def get_availability(self, professional_id: int) -> list[DayRecord]:
        self._get_professional(professional_id)

        stored = {
            record.day: record
            for record in self.db.query(Availability).filter(Availability.professional_id == professional_id).all()
        }

        days: list[DayRecord] = []
        for day in WEEK:
            record = stored.get(day.value)
            if record is None:
                days.append(DayRecord(id=None, professional_id=professional_id, day=day.value))
                continue
            days.append(
                DayRecord(
                    id=record.id,
                    professional_id=professional_id,
                    day=record.day,
                    slots=list(record.slots or []),
                    available=bool(record.available),
                )
            )
        return days

    def replace_day_slots(
        self,
        day_id: int,
        slots: Iterable[tuple[str, str]],
        available: bool,
        acting_professional_id: int,
    ) -> Availability:
        record = self._get_owned_day(day_id, acting_professional_id)

        windows = validate_slot_windows(slots)
        if available and not windows:
            raise ValidationFailed('Add at least one slot before marking a day available.')

        record.slots = _slot_dicts(windows)
        record.available = available
        self.db.commit()
        self.db.refresh(record)

        logger.info(
            'Professional %s replaced %s slots (%d windows, available=%s)',
            acting_professional_id,
            record.day,
            len(windows),
            available,
        )
        return record

    def bulk_replace(
        self,
        professional_id: int,
        days: Iterable[tuple[str, Iterable[tuple[str, str]], bool]],
    ) -> list[Availability]:
        """Create or replace several weekdays in one transaction.

        Every day is validated before anything is written, so one bad day
        leaves the whole schedule untouched.
        """
        user = self.db.query(User).filter(User.id == professional_id).first()
        if user is None:
            raise NotFound('Professional not found.')
        if not user.is_professional:
            raise Forbidden('Only professionals can set availability.')

        validated: dict[str, tuple[list[tuple[str, str]], bool]] = {}
        for day, slots, available in days:
            try:
                day_name = DayOfWeek(day).value
            except ValueError as exc:
                raise ValidationFailed(f'Unknown day "{day}".') from exc
            if day_name in validated:
                raise ValidationFailed(f'{day_name} appears more than once.')

            windows = validate_slot_windows(slots)
            if available and not windows:
                raise ValidationFailed(f'Add at least one slot before marking {day_name} available.')
            validated[day_name] = (windows, available)

        if not validated:
            raise ValidationFailed('Provide at least one day to update.')

        stored = {
            record.day: record
            for record in self.db.query(Availability).filter(Availability.professional_id == professional_id).all()
        }

        records: list[Availability] = []
        for day in WEEK:
            if day.value not in validated:
                continue
            windows, available = validated[day.value]
            record = stored.get(day.value)
            if record is None:
                record = Availability(professional_id=professional_id, day=day.value)
                self.db.add(record)
            record.slots = _slot_dicts(windows)
            record.available = available
            records.append(record)

        try:
            self.db.commit()
        except IntegrityError as exc:
            # A concurrent initialize or bulk update created one of the rows first.
            self.db.rollback()
            raise Conflict('Availability changed while saving. Please retry.') from exc

        for record in records:
            self.db.refresh(record)
        logger.info('Professional %s bulk updated %d days', professional_id, len(records))
        return records

    def list_professionals_with_availability(self) -> list[ProfessionalAvailability]:
        professionals = (
            self.db.query(User)
            .filter(User.role == Role.PROFESSIONAL.value, User.status == UserStatus.ACTIVE.value)
            .order_by(User.id.asc())
            .all()
        )
        if not professionals:
            return []

        open_days: dict[int, dict[str, Availability]] = {}
        rows = self.db.query(Availability).filter(
            Availability.professional_id.in_([professional.id for professional in professionals]),
            Availability.available.is_(True),
        )
        for record in rows.all():
            open_days.setdefault(record.professional_id, {})[record.day] = record

        result: list[ProfessionalAvailability] = []
        for professional in professionals:
            stored = open_days.get(professional.id, {})
            days = [
                DayRecord(
                    id=stored[day.value].id,
                    professional_id=professional.id,
                    day=day.value,
                    slots=list(stored[day.value].slots or []),
                    available=True,
                )
                for day in WEEK
                if day.value in stored
            ]
            result.append(ProfessionalAvailability(professional.id, professional.name, days))
        return result

    def clear_day(self, day_id: int, acting_professional_id: int) -> Availability:
        record = self._get_owned_day(day_id, acting_professional_id)
        record.slots = []
        record.available = False
        self.db.commit()
        self.db.refresh(record)
        logger.info('Professional %s cleared %s', acting_professional_id, record.day)
        return record

    # Slot query

    def resolve_dates(
        self,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[date]:
        today = self._now().date()

        if on_date is not None and (date_from is not None or date_to is not None):
            raise ValidationFailed('Use either date or date_from/date_to, not both.')

        if on_date is not None:
            candidates = [on_date]
        else:
            start = date_from or today
            end = date_to or start + timedelta(days=config.SLOT_QUERY_DEFAULT_DAYS - 1)
            if start > end:
                raise ValidationFailed('date_from must be on or before date_to.')
            span = (end - start).days + 1
            if span > config.SLOT_QUERY_MAX_DAYS:
                raise ValidationFailed(f'Date range cannot exceed {config.SLOT_QUERY_MAX_DAYS} days.')
            candidates = [start + timedelta(days=offset) for offset in range(span)]

        return [candidate for candidate in candidates if candidate >= today]

    def _occupied_windows(
        self,
        professional_ids: set[int],
        dates: list[date],
        ignore_booking_id: Optional[int] = None,
    ) -> dict[tuple[int, date], list[tuple[str, str]]]:
        if not professional_ids or not dates:
            return {}

        query = self.db.query(Booking).filter(
            Booking.professional_id.in_(professional_ids),
            Booking.date.in_(dates),
            Booking.status.in_(ACTIVE_STATUSES),
        )
        if ignore_booking_id is not None:
            query = query.filter(Booking.id != ignore_booking_id)

        occupied: dict[tuple[int, date], list[tuple[str, str]]] = {}
        for booking in query.all():
            occupied.setdefault((booking.professional_id, booking.date), []).append(
                (booking.start_time, booking.end_time)
            )
        return occupied

    def collect_windows(self, dates: list[date], professional_id: Optional[int] = None) -> list[SlotWindow]:
        """Every offered window on ``dates`` that has not started yet, flagged when taken."""
        if not dates:
            return []

        weekdays = {day_of_week(candidate).value for candidate in dates}
        query = (
            self.db.query(Availability, User)
            .join(User, User.id == Availability.professional_id)
            .filter(
                Availability.available.is_(True),
                Availability.day.in_(weekdays),
                User.role == Role.PROFESSIONAL.value,
                User.status == UserStatus.ACTIVE.value,
            )
        )
        if professional_id is not None:
            query = query.filter(Availability.professional_id == professional_id)

        schedule: dict[str, list[tuple[Availability, User]]] = {}
        for record, professional in query.all():
            schedule.setdefault(record.day, []).append((record, professional))

        occupied = self._occupied_windows(
            {professional.id for rows in schedule.values() for _, professional in rows},
            dates,
        )
        now = self._now()

        windows: list[SlotWindow] = []
        for candidate in sorted(set(dates)):
            rows = sorted(schedule.get(day_of_week(candidate).value, []), key=lambda row: row[1].id)
            for record, professional in rows:
                booked = occupied.get((professional.id, candidate), [])
                for start, end in record.windows():
                    if combine(candidate, start) <= now:
                        continue
                    taken = any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in booked)
                    windows.append(SlotWindow(professional, candidate, start, end, taken))
        return windows

    def list_open_slots(
        self,
        on_date: Optional[date] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        professional_id: Optional[int] = None,
        day: Optional[DayOfWeek] = None,
    ) -> list[OpenSlot]:
        dates = self.resolve_dates(on_date, date_from, date_to)
        if day is not None:
            dates = [candidate for candidate in dates if day_of_week(candidate) == DayOfWeek(day)]
        return [
            OpenSlot(
                id=f'{window.professional.id}-{window.date.isoformat()}-{window.start_time}',
                professional_id=window.professional.id,
                professional_name=window.professional.name,
                date=window.date,
                day=day_of_week(window.date).value,
                start_time=window.start_time,
                end_time=window.end_time,
            )
            for window in self.collect_windows(dates, professional_id)
            if not window.taken
        ]

    def check_slot_available(
        self,
        professional_id: int,
        on_date: date,
        start_time: str,
        end_time: str,
        ignore_booking_id: Optional[int] = None,
    ) -> SlotCheck:
        start, end = validate_window(start_time, end_time)
        day: DayOfWeek = day_of_week(on_date)

        record = (
            self.db.query(Availability)
            .join(User, User.id == Availability.professional_id)
            .filter(
                Availability.professional_id == professional_id,
                Availability.day == day.value,
                Availability.available.is_(True),
                User.role == Role.PROFESSIONAL.value,
                User.status == UserStatus.ACTIVE.value,
            )
            .first()
        )
        if record is None:
            return SlotCheck(False, 'Professional not available on this day.')

        if (start, end) not in record.windows():
            return SlotCheck(False, 'This time slot is not offered.')

        booked = self._occupied_windows({professional_id}, [on_date], ignore_booking_id).get(
            (professional_id, on_date), []
        )
        if any(intervals_overlap(start, end, b_start, b_end) for b_start, b_end in booked):
            return SlotCheck(False, 'This time slot is already booked.')

        return SlotCheck(True)
