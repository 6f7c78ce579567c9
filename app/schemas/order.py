# app/schemas/order.py
import uuid
from datetime import datetime
from typing import Literal

from pydantic import ConfigDict, EmailStr, field_validator
from sqlmodel import SQLModel, Field

OrderStatus = Literal[
    "pending",
    "confirmed",
    "processing",
    "shipped",
    "delivered",
    "cancelled",
]
PaymentStatus = Literal["pending", "successful", "failed", "cancelled", "refunded"]
PaymentMethod = Literal["card", "bank", "ussd", "transfer"]


class OrderLineCreate(SQLModel):
    """
    One cart line as submitted at checkout.

    Display fields the client may echo back (name, price, image) are
    ignored; price is always read from the catalog.
    """

    model_config = ConfigDict(extra="ignore")

    product_id: uuid.UUID
    quantity: int = Field(ge=1)
    size: str | None = None
    color: str | None = None


class ShippingAddress(SQLModel):
    model_config = ConfigDict(extra="forbid")

    first_name: str
    last_name: str
    email: EmailStr
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str | None = None

    @field_validator(
        "first_name",
        "last_name",
        "phone",
        "address",
        "city",
        "state",
        "zip_code",
    )
    @classmethod
    def not_empty(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("field cannot be empty")
        return v

    @field_validator("country")
    @classmethod
    def normalize_country(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderCreate(SQLModel):
    """
    Checkout payload.

    User provides:
      - items (the client-side cart, in display order)
      - shipping_address
      - notes (optional)

    Backend derives:
      - user_id from token
      - prices, totals and order_number
      - status = 'pending', payment status = 'pending'
    """

    model_config = ConfigDict(extra="forbid")

    items: list[OrderLineCreate]
    shipping_address: ShippingAddress
    notes: str | None = None

    @field_validator("items")
    @classmethod
    def cart_not_empty(cls, v: list[OrderLineCreate]) -> list[OrderLineCreate]:
        if not v:
            raise ValueError(
                "Cart is empty. Please add items to your cart before checkout."
            )
        return v

    @field_validator("notes")
    @classmethod
    def normalize_notes(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        return v or None


class OrderItemRead(SQLModel):
    id: uuid.UUID
    product_id: uuid.UUID
    name: str
    price: float
    quantity: int
    size: str
    color: str
    image: str
    line_total: float


class PaymentRead(SQLModel):
    status: PaymentStatus
    method: PaymentMethod
    reference: str
    transaction_id: str
    amount: float
    currency: str
    paid_at: datetime | None


class ShippingAddressRead(SQLModel):
    first_name: str
    last_name: str
    email: str
    phone: str
    address: str
    city: str
    state: str
    zip_code: str
    country: str


class OrderRead(SQLModel):
    """
    Full order view including items, shipping address and payment.
    """

    id: uuid.UUID
    order_number: str
    user_id: uuid.UUID
    items: list[OrderItemRead]
    shipping_address: ShippingAddressRead
    payment: PaymentRead
    status: OrderStatus
    total_amount: float
    shipping_fee: float
    tax_amount: float
    discount_amount: float
    final_amount: float
    notes: str
    tracking_number: str
    delivered_at: datetime | None
    cancelled_at: datetime | None
    cancellation_reason: str
    created_at: datetime
    updated_at: datetime


class OrderSummaryRead(SQLModel):
    """
    Lightweight representation used by dashboards.
    """

    id: uuid.UUID
    order_number: str
    status: OrderStatus
    total_amount: float
    final_amount: float
    created_at: datetime


class Pagination(SQLModel):
    current_page: int
    total_pages: int
    total_orders: int


class OrderPage(SQLModel):
    orders: list[OrderRead]
    pagination: Pagination


class OrderCheckoutResult(SQLModel):
    """
    Result of POST /orders.

    When the gateway could not issue a payment link, `payment_link` is None
    and the warning/support fields are filled in; the order itself is kept.
    """

    success: bool = True
    message: str
    order: OrderRead
    payment_link: str | None = None
    reference: str | None = None
    warning: str | None = None
    order_number: str | None = None
    support_email: str | None = None
    support_phone: str | None = None


class VerifyPaymentRequest(SQLModel):
    model_config = ConfigDict(extra="ignore")

    reference: str | None = None
    order_id: uuid.UUID | None = None


class VerifyPaymentResponse(SQLModel):
    success: bool = True
    message: str
    order: OrderRead


class CancelOrderRequest(SQLModel):
    model_config = ConfigDict(extra="forbid")

    reason: str | None = None


class OrderStatusUpdate(SQLModel):
    """
    Admin payload to change order status.
    """

    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    tracking_number: str | None = None


class PaymentGatewayHealth(SQLModel):
    configured: bool
    connected: bool
    message: str
