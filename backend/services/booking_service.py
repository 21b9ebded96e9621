"""Booking lifecycle: creation, status transitions, reschedule and listing.

Transitions follow ``ALLOWED_TRANSITIONS``. Creation and reschedule re-check
the requested window at write time while holding a row lock on the
professional, and the partial unique index on active bookings turns a lost
race into ``Conflict``.
"""

import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.core import config
from backend.core.errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from backend.core.timeslots import combine, validate_window
from backend.models.booking import ACTIVE_STATUSES, Booking, BookingStatus, Modality
from backend.models.notification import NotificationType
from backend.models.user import User
from backend.services.availability_service import AvailabilityService
from backend.services.meetings import generate_meeting_link
from backend.services.notification_service import NotificationDispatcher

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    BookingStatus.PENDING.value: {BookingStatus.CONFIRMED.value, BookingStatus.CANCELLED.value},
    BookingStatus.CONFIRMED.value: {BookingStatus.COMPLETED.value, BookingStatus.CANCELLED.value},
}

AUTO_CANCEL_REASON = 'Automatically cancelled - not accepted before session time'


@dataclass
class BookingPage:
    data: list[Booking]
    page: int
    limit: int
    total: int
    total_pages: int


def _describe(booking: Booking) -> str:
    return f'{booking.date.strftime("%a %d %b %Y")} at {booking.start_time}'


class BookingService:
    def __init__(
        self,
        db: Session,
        notifier: Optional[NotificationDispatcher] = None,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.db = db
        self._now = now or datetime.now
        self.notifier = notifier or NotificationDispatcher(db)
        self.availability = AvailabilityService(db, now=self._now)

    # Helpers

    def _get(self, booking_id: int) -> Booking:
        booking = self.db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is None:
            raise NotFound('Booking not found.')
        return booking

    def _ensure_transition(self, booking: Booking, target: BookingStatus, action: str) -> None:
        if target.value not in ALLOWED_TRANSITIONS.get(booking.status, set()):
            raise InvalidState(f'Cannot {action} booking with status {booking.status}.')

    def _validate_window(self, on_date: date, start_time: str, end_time: str) -> tuple[str, str]:
        start, end = validate_window(start_time, end_time)
        if combine(on_date, start) <= self._now():
            raise ValidationFailed('Sessions must be scheduled in the future.')
        return start, end

    def _lock_professional(self, professional_id: int) -> User:
        # Serializes writes per professional on databases that honour FOR UPDATE.
        professional = self.db.query(User).filter(User.id == professional_id).with_for_update().first()
        if professional is None or not professional.is_professional:
            self.db.rollback()
            raise NotFound('Professional not found.')
        return professional

    def _ensure_open(
        self,
        professional_id: int,
        on_date: date,
        start: str,
        end: str,
        ignore_booking_id: Optional[int] = None,
    ) -> None:
        check = self.availability.check_slot_available(professional_id, on_date, start, end, ignore_booking_id)
        if not check.is_available:
            self.db.rollback()
            raise Conflict(check.reason)

    def _commit_slot(self) -> None:
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise Conflict('This time slot is already booked.') from exc

    @staticmethod
    def _counterpart(booking: Booking, actor_id: int) -> int:
        return booking.professional_id if actor_id == booking.user_id else booking.user_id

    # Lifecycle

    def create(
        self,
        user_id: int,
        professional_id: int,
        on_date: date,
        start_time: str,
        end_time: str,
        modality: str,
        concern: str,
        notes: Optional[str] = None,
    ) -> Booking:
        start, end = self._validate_window(on_date, start_time, end_time)

        if user_id == professional_id:
            raise ValidationFailed('You cannot book a session with yourself.')

        try:
            modality_value = Modality(modality).value
        except ValueError as exc:
            raise ValidationFailed('Modality must be Video or Audio.') from exc

        concern = (concern or '').strip()
        if not concern:
            raise ValidationFailed('Please describe your concern.')

        self._lock_professional(professional_id)
        self._ensure_open(professional_id, on_date, start, end)

        booking = Booking(
            user_id=user_id,
            professional_id=professional_id,
            date=on_date,
            start_time=start,
            end_time=end,
            modality=modality_value,
            concern=concern,
            notes=(notes or '').strip() or None,
            status=BookingStatus.PENDING.value,
        )
        self.db.add(booking)
        self._commit_slot()
        self.db.refresh(booking)

        logger.info(
            'Booking %s created by user %s with professional %s on %s %s-%s',
            booking.id,
            user_id,
            professional_id,
            on_date.isoformat(),
            start,
            end,
        )
        self.notifier.notify(
            recipient_id=professional_id,
            type=NotificationType.BOOKING_REQUEST,
            message=f'New booking request for {_describe(booking)}.',
            booking_id=booking.id,
            sender_id=user_id,
        )
        return booking

    def confirm(self, booking_id: int, acting_professional_id: int) -> Booking:
        booking = self._get(booking_id)
        if booking.professional_id != acting_professional_id:
            raise Forbidden('Not authorized to confirm this booking.')
        self._ensure_transition(booking, BookingStatus.CONFIRMED, 'confirm')

        booking.status = BookingStatus.CONFIRMED.value
        booking.meeting_link = generate_meeting_link()
        self.db.commit()
        self.db.refresh(booking)

        logger.info('Booking %s confirmed by professional %s', booking.id, acting_professional_id)
        self.notifier.notify(
            recipient_id=booking.user_id,
            type=NotificationType.BOOKING_CONFIRMED,
            message=f'Your session on {_describe(booking)} has been confirmed.',
            booking_id=booking.id,
            sender_id=acting_professional_id,
        )
        return booking

    def cancel(self, booking_id: int, acting_user_id: int, reason: str) -> Booking:
        booking = self._get(booking_id)
        if not booking.involves(acting_user_id):
            raise Forbidden('Not authorized to cancel this booking.')

        reason = (reason or '').strip()
        if not reason:
            raise ValidationFailed('A cancellation reason is required.')
        self._ensure_transition(booking, BookingStatus.CANCELLED, 'cancel')

        booking.status = BookingStatus.CANCELLED.value
        booking.cancellation_reason = reason
        self.db.commit()
        self.db.refresh(booking)

        logger.info('Booking %s cancelled by user %s', booking.id, acting_user_id)
        self.notifier.notify(
            recipient_id=self._counterpart(booking, acting_user_id),
            type=NotificationType.BOOKING_CANCELLED,
            message=f'The session on {_describe(booking)} has been cancelled: {reason}',
            booking_id=booking.id,
            sender_id=acting_user_id,
        )
        return booking

    def complete(self, booking_id: int, acting_professional_id: int) -> Booking:
        booking = self._get(booking_id)
        if booking.professional_id != acting_professional_id:
            raise Forbidden('Not authorized to complete this booking.')
        self._ensure_transition(booking, BookingStatus.COMPLETED, 'complete')

        booking.status = BookingStatus.COMPLETED.value
        self.db.commit()
        self.db.refresh(booking)

        logger.info('Booking %s completed by professional %s', booking.id, acting_professional_id)
        self.notifier.notify(
            recipient_id=booking.user_id,
            type=NotificationType.BOOKING_COMPLETED,
            message=f'Your session on {_describe(booking)} has been completed.',
            booking_id=booking.id,
            sender_id=acting_professional_id,
        )
        return booking

    def reschedule(
        self,
        booking_id: int,
        acting_user_id: int,
        new_date: date,
        new_start_time: str,
        new_end_time: str,
        reason: Optional[str] = None,
    ) -> Booking:
        booking = self._get(booking_id)
        if not booking.involves(acting_user_id):
            raise Forbidden('Not authorized to reschedule this booking.')
        if booking.status not in ACTIVE_STATUSES:
            raise InvalidState(f'Cannot reschedule booking with status {booking.status}.')

        start, end = self._validate_window(new_date, new_start_time, new_end_time)

        self._lock_professional(booking.professional_id)
        self._ensure_open(booking.professional_id, new_date, start, end, ignore_booking_id=booking.id)

        # Field mutation only; the status stays Pending or Confirmed.
        booking.date = new_date
        booking.start_time = start
        booking.end_time = end
        booking.reschedule_reason = (reason or '').strip() or None
        self._commit_slot()
        self.db.refresh(booking)

        logger.info(
            'Booking %s rescheduled by user %s to %s %s-%s',
            booking.id,
            acting_user_id,
            new_date.isoformat(),
            start,
            end,
        )
        self.notifier.notify(
            recipient_id=self._counterpart(booking, acting_user_id),
            type=NotificationType.BOOKING_RESCHEDULED,
            message=f'Your session has been rescheduled to {_describe(booking)}.',
            booking_id=booking.id,
            sender_id=acting_user_id,
        )
        return booking

    # Read side

    def get(self, booking_id: int, actor: User) -> Booking:
        booking = self._get(booking_id)
        if not (actor.is_admin or booking.involves(actor.id)):
            raise Forbidden('Not authorized to view this booking.')
        return booking

    def list_bookings(
        self,
        actor: User,
        status: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        professional_id: Optional[int] = None,
        user_id: Optional[int] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> BookingPage:
        if limit is None:
            limit = config.BOOKING_DEFAULT_PAGE_SIZE
        if page < 1:
            raise ValidationFailed('page must be 1 or greater.')
        if not 1 <= limit <= config.BOOKING_MAX_PAGE_SIZE:
            raise ValidationFailed(f'limit must be between 1 and {config.BOOKING_MAX_PAGE_SIZE}.')
        if date_from and date_to and date_from > date_to:
            raise ValidationFailed('date_from must be on or before date_to.')

        query = self.db.query(Booking)

        if actor.is_admin:
            pass
        elif actor.is_professional:
            query = query.filter(Booking.professional_id == actor.id)
        else:
            query = query.filter(Booking.user_id == actor.id)

        if status:
            try:
                query = query.filter(Booking.status == BookingStatus(status).value)
            except ValueError as exc:
                raise ValidationFailed(f'Unknown booking status "{status}".') from exc
        if date_from:
            query = query.filter(Booking.date >= date_from)
        if date_to:
            query = query.filter(Booking.date <= date_to)
        if professional_id is not None:
            query = query.filter(Booking.professional_id == professional_id)
        if user_id is not None:
            query = query.filter(Booking.user_id == user_id)

        total = query.count()
        bookings = (
            query.order_by(Booking.date.asc(), Booking.start_time.asc(), Booking.id.asc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )

        return BookingPage(
            data=bookings,
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
        )

    # Maintenance

    def expire_stale(self) -> dict:
        """Cancel pending bookings whose start passed and complete finished confirmed ones."""
        now = self._now()
        grace = timedelta(minutes=config.AUTO_COMPLETE_GRACE_MINUTES)

        candidates = self.db.query(Booking).filter(
            Booking.status.in_(ACTIVE_STATUSES),
            Booking.date <= now.date(),
        ).all()

        cancelled: list[Booking] = []
        completed: list[Booking] = []
        for booking in candidates:
            if booking.status == BookingStatus.PENDING.value and combine(booking.date, booking.start_time) <= now:
                booking.status = BookingStatus.CANCELLED.value
                booking.cancellation_reason = AUTO_CANCEL_REASON
                cancelled.append(booking)
            elif (
                booking.status == BookingStatus.CONFIRMED.value
                and combine(booking.date, booking.end_time) + grace <= now
            ):
                booking.status = BookingStatus.COMPLETED.value
                completed.append(booking)

        if not cancelled and not completed:
            return {'cancelled': 0, 'completed': 0}

        self.db.commit()
        logger.info('Expired bookings: %d cancelled, %d completed', len(cancelled), len(completed))

        for booking in cancelled:
            for recipient_id in (booking.user_id, booking.professional_id):
                self.notifier.notify(
                    recipient_id=recipient_id,
                    type=NotificationType.BOOKING_CANCELLED,
                    message=f'The session on {_describe(booking)} was cancelled: it was not accepted in time.',
                    booking_id=booking.id,
                )
        for booking in completed:
            self.notifier.notify(
                recipient_id=booking.user_id,
                type=NotificationType.BOOKING_COMPLETED,
                message=f'Your session on {_describe(booking)} has been completed.',
                booking_id=booking.id,
                sender_id=booking.professional_id,
            )

        return {'cancelled': len(cancelled), 'completed': len(completed)}
