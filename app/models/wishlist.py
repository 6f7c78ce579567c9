# app/models/wishlist.py
import uuid
from datetime import datetime, timezone

from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class WishlistItem(SQLModel, table=True):
    """
    A product saved for later by a shopper.

    One user cannot have 2 rows for the same product; saving it again only
    updates the preferred size/color.

    price_when_added and in_stock_when_added are snapshots used to tell the
    shopper about price drops and restocks.
    """

    __tablename__ = "wishlist_items"
    __table_args__ = (UniqueConstraint("user_id", "product_id"),)

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    product_id: uuid.UUID = Field(
        foreign_key="products.id",
        index=True,
    )

    size: str = Field(default="", max_length=20)
    color: str = Field(default="", max_length=50)

    price_when_added: float = Field(
        description="Catalog price when saved",
    )

    in_stock_when_added: bool = True

    added_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )
