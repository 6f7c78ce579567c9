# app/models/product.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Product(SQLModel, table=True):
    """
    Product catalog entry.

    `stock` is the available-to-sell counter. It is only ever changed with
    single conditional UPDATE statements (see ProductRepository.reserve_stock)
    so concurrent checkouts cannot drive it below zero.
    """

    __tablename__ = "products"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    name: str = Field(
        max_length=100,
        index=True,
        description="Display name of the product",
    )

    slug: str = Field(
        max_length=255,
        unique=True,
        index=True,
        description="URL-friendly identifier (unique)",
    )

    description: str | None = Field(
        default=None,
        max_length=1000,
    )

    price: float = Field(
        gt=0,
        description="Unit price in major currency units (e.g. NGN)",
    )

    # hijab | abaya | jalabiya | accessory
    category: str = Field(
        index=True,
        description="Product category",
    )

    stock: int = Field(
        default=0,
        ge=0,
        description="How many units are available to sell",
    )

    # Comma-joined lists; exposed as list[str] by the schemas
    sizes: str = Field(default="")
    colors: str = Field(default="")

    featured: bool = Field(default=False, index=True)

    discount: float = Field(
        default=0,
        ge=0,
        le=100,
        description="Percentage discount shown on the storefront",
    )

    is_active: bool = Field(
        default=True,
        index=True,
        description="Whether this product is visible on the storefront",
    )

    image_url: str | None = Field(
        default=None,
        description="Main image URL (media host)",
    )

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Creation timestamp (UTC)",
    )

    @property
    def discounted_price(self) -> float:
        return round(self.price * (1 - self.discount / 100), 2)
