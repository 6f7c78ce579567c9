# app/schemas/stats.py
import uuid
from datetime import datetime

from pydantic import ConfigDict
from sqlmodel import SQLModel

from app.schemas.order import OrderStatus, PaymentStatus


class StatusCount(SQLModel):
    model_config = ConfigDict(extra="forbid")

    status: OrderStatus
    count: int


class TopProduct(SQLModel):
    """
    Aggregated stats for top-selling products.
    """
    model_config = ConfigDict(extra="forbid")

    product_id: uuid.UUID
    name: str
    total_quantity: int
    total_revenue: float


class LowStockProduct(SQLModel):
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    name: str
    stock: int


class LatestOrderSummary(SQLModel):
    """
    Lightweight info for last N orders.
    """
    model_config = ConfigDict(extra="forbid")

    id: uuid.UUID
    order_number: str
    created_at: datetime
    user_id: uuid.UUID
    customer_name: str
    final_amount: float
    status: OrderStatus
    payment_status: PaymentStatus


class AdminDashboardStats(SQLModel):
    """
    Full payload for admin dashboard.
    """
    model_config = ConfigDict(extra="forbid")

    users_count: int
    products_count: int
    orders_count: int
    total_sales: float
    orders_by_status: list[StatusCount]
    top_products: list[TopProduct]
    low_stock_products: list[LowStockProduct]
    recent_orders: list[LatestOrderSummary]
