# app/models/notification.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Notification(SQLModel, table=True):
    """
    User-facing notification written as a side effect of order events.
    """

    __tablename__ = "notifications"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # order_confirm | payment_success | order_update | system
    type: str = Field(index=True)

    title: str
    message: str

    # Data payload
    order_id: uuid.UUID | None = Field(default=None, index=True)
    link: str = Field(default="")

    # low | normal | high
    priority: str = Field(default="normal")

    is_read: bool = Field(default=False, index=True)

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
