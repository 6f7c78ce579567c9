# app/services/notification_service.py
import logging
import uuid

from sqlmodel import Session

from app.models.notification import Notification
from app.models.order import Order
from app.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Records user-facing notifications for order lifecycle events.

    Writes join the caller's transaction so a notification exists exactly
    when the state change it describes was committed.
    """

    def __init__(self, repo: NotificationRepository):
        self.repo = repo

    def notify(
        self,
        session: Session,
        user_id: uuid.UUID,
        type_: str,
        title: str,
        message: str,
        order: Order | None = None,
        priority: str = "normal",
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            type=type_,
            title=title,
            message=message,
            order_id=order.id if order is not None else None,
            link=f"/my-orders/{order.id}" if order is not None else "",
            priority=priority,
        )
        self.repo.add(session, notification)
        logger.info("Notification %s recorded for user %s", type_, user_id)
        return notification

    # ---- Order lifecycle events ----

    def order_received(self, session: Session, order: Order) -> Notification:
        return self.notify(
            session,
            order.user_id,
            "order_confirm",
            "Order Confirmed",
            f"Your order #{order.order_number} has been received and is being processed.",
            order=order,
            priority="high",
        )

    def payment_succeeded(self, session: Session, order: Order) -> Notification:
        return self.notify(
            session,
            order.user_id,
            "payment_success",
            "Payment Successful",
            f"Your payment for order #{order.order_number} was successful.",
            order=order,
            priority="high",
        )

    def order_cancelled(self, session: Session, order: Order) -> Notification:
        return self.notify(
            session,
            order.user_id,
            "system",
            "Order Cancelled",
            f"Your order #{order.order_number} has been cancelled.",
            order=order,
        )

    def order_status_changed(self, session: Session, order: Order) -> Notification:
        return self.notify(
            session,
            order.user_id,
            "order_update",
            "Order Update",
            f"Your order #{order.order_number} is now {order.status}.",
            order=order,
        )

    # ---- Inbox ----

    def list_for_user(
        self,
        session: Session,
        user_id: uuid.UUID,
        unread_only: bool = False,
        skip: int = 0,
        limit: int = 20,
    ) -> list[Notification]:
        return self.repo.list_for_user(session, user_id, unread_only, skip, limit)

    def mark_read(
        self,
        session: Session,
        user_id: uuid.UUID,
        notification_id: uuid.UUID,
    ) -> Notification | None:
        """
        Returns None if the notification does not exist or is not the user's.
        """
        notification = self.repo.get_by_id(session, notification_id)
        if notification is None or notification.user_id != user_id:
            return None
        return self.repo.mark_read(session, notification)

    def mark_all_read(self, session: Session, user_id: uuid.UUID) -> int:
        return self.repo.mark_all_read(session, user_id)
