# app/schemas/notification.py
import uuid
from datetime import datetime
from typing import Literal

from sqlmodel import SQLModel

NotificationType = Literal["order_confirm", "payment_success", "order_update", "system"]


class NotificationRead(SQLModel):
    id: uuid.UUID
    type: NotificationType
    title: str
    message: str
    order_id: uuid.UUID | None
    link: str
    priority: Literal["low", "normal", "high"]
    is_read: bool
    created_at: datetime


class MarkAllReadResult(SQLModel):
    updated: int
