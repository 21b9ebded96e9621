from datetime import datetime

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user
from backend.database import database_unavailable, ensure_database_ready, get_db
from backend.models.user import User
from backend.services.notification_service import NotificationDispatcher

router = APIRouter(tags=['notifications'])


class NotificationResponse(BaseModel):
    id: int
    type: str
    message: str
    booking_id: int | None = None
    sender_id: int | None = None
    is_read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


@router.get('', response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(default=False),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return NotificationDispatcher(db).list_for(current_user.id, unread_only=unread_only)
    except SQLAlchemyError as exc:
        raise database_unavailable(exc) from exc


@router.put('/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_read(
    notification_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return NotificationDispatcher(db).mark_read(notification_id, current_user.id)
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable(exc) from exc
