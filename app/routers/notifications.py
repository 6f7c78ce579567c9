# app/routers/notifications.py
import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlmodel import Session

from app.core.auth import require_auth
from app.database import get_session
from app.models.user import User
from app.repositories.notification_repo import NotificationRepository
from app.schemas.notification import MarkAllReadResult, NotificationRead
from app.services.notification_service import NotificationService

router = APIRouter(prefix="/notifications", tags=["Notifications"])

service = NotificationService(NotificationRepository())


@router.get("", response_model=list[NotificationRead])
def list_my_notifications(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    unread_only: bool = False,
    skip: int = 0,
    limit: int = 20,
):
    """
    The authenticated user's notifications, newest first.
    """
    return service.list_for_user(session, current_user.id, unread_only, skip, limit)


@router.patch("/read-all", response_model=MarkAllReadResult)
def mark_all_read(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    return MarkAllReadResult(updated=service.mark_all_read(session, current_user.id))


@router.patch("/{notification_id}/read", response_model=NotificationRead)
def mark_read(
    notification_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    notification = service.mark_read(session, current_user.id, notification_id)
    if notification is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found",
        )
    return notification
