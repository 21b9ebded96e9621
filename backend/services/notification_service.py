"""In-app notification dispatch for booking state changes.

Dispatch is fire-and-forget: the booking transition that triggered it is
already committed, so a failed write here is rolled back and logged but never
raised to the caller.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.core.errors import Forbidden, NotFound
from backend.models.notification import Notification, NotificationType

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    def __init__(self, db: Session):
        self.db = db

    def notify(
        self,
        recipient_id: int,
        type: NotificationType,
        message: str,
        booking_id: Optional[int] = None,
        sender_id: Optional[int] = None,
    ) -> Optional[Notification]:
        notification = Notification(
            recipient_id=recipient_id,
            sender_id=sender_id,
            booking_id=booking_id,
            type=type.value,
            message=message,
            is_read=False,
        )
        try:
            self.db.add(notification)
            self.db.commit()
            self.db.refresh(notification)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                'Failed to deliver %s notification to user %s for booking %s',
                type.value,
                recipient_id,
                booking_id,
            )
            return None

        logger.info('Notification %s sent to user %s for booking %s', type.value, recipient_id, booking_id)
        return notification

    def list_for(self, recipient_id: int, unread_only: bool = False) -> list[Notification]:
        query = self.db.query(Notification).filter(Notification.recipient_id == recipient_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    def mark_read(self, notification_id: int, recipient_id: int) -> Notification:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if notification is None:
            raise NotFound('Notification not found.')
        if notification.recipient_id != recipient_id:
            raise Forbidden('Not authorized to update this notification.')

        notification.is_read = True
        self.db.commit()
        self.db.refresh(notification)
        return notification
