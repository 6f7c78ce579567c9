# app/schemas/wishlist.py
import uuid
from datetime import datetime
from typing import Literal

from sqlmodel import SQLModel, Field


class WishlistItemCreate(SQLModel):
    """
    Payload for saving a product. Saving it again updates size/color.
    """

    product_id: uuid.UUID
    size: str | None = Field(default=None, max_length=20)
    color: str | None = Field(default=None, max_length=50)


class WishlistItemRead(SQLModel):
    """
    A saved product with its current catalog data.
    """

    product_id: uuid.UUID
    name: str
    slug: str
    price: float
    discounted_price: float
    category: str
    stock: int
    in_stock: bool
    image_url: str | None = None
    size: str
    color: str
    added_at: datetime


class WishlistRead(SQLModel):
    items: list[WishlistItemRead]
    count: int


class MoveToCartRequest(SQLModel):
    quantity: int = Field(default=1, gt=0)


class MoveToCartResult(SQLModel):
    """
    The line to put in the client-side cart. The item is already removed
    from the wishlist.
    """

    product_id: uuid.UUID
    name: str
    price: float
    image_url: str | None = None
    size: str
    color: str
    quantity: int


class WishlistAlert(SQLModel):
    type: Literal["wishlist_restock", "wishlist_price_drop"]
    product_id: uuid.UUID
    product_name: str
    title: str
    message: str


class WishlistAlerts(SQLModel):
    has_notifications: bool
    notifications: list[WishlistAlert]
