# app/repositories/notification_repo.py
import uuid

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.notification import Notification


class NotificationRepository:
    """
    Data access layer for notifications.

    `add` never commits: notifications written as order side effects are
    part of the order's transaction.
    """

    def add(self, session: Session, notification: Notification) -> Notification:
        session.add(notification)
        session.flush()
        return notification

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read == False)  # noqa: E712
        stmt = stmt.order_by(Notification.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
        type_: str | None = None,
    ) -> int:
        stmt = select(func.count()).select_from(Notification).where(
            Notification.order_id == order_id
        )
        if type_:
            stmt = stmt.where(Notification.type == type_)
        return int(session.exec(stmt).one() or 0)

    def get_by_id(self, session: Session, notification_id: uuid.UUID) -> Notification | None:
        return session.get(Notification, notification_id)

    def mark_read(self, session: Session, notification: Notification) -> Notification:
        notification.is_read = True
        session.add(notification)
        session.commit()
        session.refresh(notification)
        return notification

    def mark_all_read(self, session: Session, user_id: uuid.UUID) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read == False)  # noqa: E712
            .values(is_read=True)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        session.commit()
        return result.rowcount
