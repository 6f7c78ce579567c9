# app/models/order.py
import uuid
from datetime import datetime, timezone

from sqlmodel import SQLModel, Field


class Order(SQLModel, table=True):
    """
    Customer order.

    The shipping address and the payment sub-record are embedded as
    prefixed columns (shipping_*, payment_*) and re-nested by the schemas.

    `order_number` is the human-facing id and doubles as the payment
    gateway reference. It is assigned once, before the first INSERT.
    """

    __tablename__ = "orders"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_number: str = Field(
        unique=True,
        index=True,
        description="Human-readable order id, also the gateway reference",
    )

    user_id: uuid.UUID = Field(
        foreign_key="users.id",
        index=True,
    )

    # --- Shipping address ---
    shipping_first_name: str
    shipping_last_name: str
    shipping_email: str
    shipping_phone: str
    shipping_address: str
    shipping_city: str
    shipping_state: str
    shipping_zip_code: str
    shipping_country: str = Field(default="Nigeria")

    # --- Payment ---
    # pending | successful | failed | cancelled | refunded
    payment_status: str = Field(default="pending", index=True)
    # card | bank | ussd | transfer
    payment_method: str = Field(default="card")
    payment_reference: str = Field(default="")
    payment_transaction_id: str = Field(default="")
    payment_amount: float
    payment_currency: str = Field(default="NGN")
    paid_at: datetime | None = None

    # pending | confirmed | processing | shipped | delivered | cancelled
    status: str = Field(
        default="pending",
        index=True,
        description="Order status lifecycle",
    )

    # --- Money ---
    total_amount: float = Field(description="Items subtotal")
    shipping_fee: float = Field(default=0)
    tax_amount: float = Field(default=0)
    discount_amount: float = Field(default=0)
    final_amount: float = Field(
        default=0,
        description="total + shipping + tax - discount",
    )

    notes: str = Field(default="")
    tracking_number: str = Field(default="")

    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str = Field(default="")

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
        description="Creation timestamp (UTC)",
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    def recalculate_final_amount(self) -> float:
        self.final_amount = round(
            self.total_amount
            + self.shipping_fee
            + self.tax_amount
            - self.discount_amount,
            2,
        )
        return self.final_amount


class OrderItem(SQLModel, table=True):
    """
    Line item inside an order.

    Everything about the product is snapshotted at order time; product_id
    is kept for reference only (no FK) so catalog deletions never touch
    historical orders.
    """

    __tablename__ = "order_items"

    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
    )

    order_id: uuid.UUID = Field(
        foreign_key="orders.id",
        index=True,
    )

    # Position inside the cart as submitted
    position: int = Field(default=0)

    product_id: uuid.UUID = Field(index=True)

    name: str
    price: float = Field(description="Unit price at time of order")

    quantity: int = Field(
        gt=0,
        description="Quantity ordered (>=1)",
    )

    size: str = Field(default="")
    color: str = Field(default="")
    image: str = Field(default="")
