# app/routers/admin.py
import uuid

from fastapi import APIRouter, Depends
from sqlmodel import Session

from app.core.auth import require_admin
from app.database import get_session
from app.repositories.notification_repo import NotificationRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.repositories.stats_repo import StatsRepository
from app.schemas.order import OrderPage, OrderRead, OrderStatusUpdate
from app.schemas.stats import AdminDashboardStats
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.stats_service import StatsService

router = APIRouter(
    prefix="/admin",
    tags=["Admin"],
    dependencies=[Depends(require_admin)],
)

stats_service = StatsService(StatsRepository())
order_service = OrderService(
    OrderRepository(),
    ProductRepository(),
    NotificationService(NotificationRepository()),
)


@router.get("/stats", response_model=AdminDashboardStats)
def get_admin_dashboard_stats(session: Session = Depends(get_session)):
    """
    Aggregated statistics for the admin dashboard.

    Only accessible to users with role='admin'.
    """
    return stats_service.get_admin_dashboard_stats(session=session)


@router.get("/orders", response_model=OrderPage)
def list_all_orders(
    session: Session = Depends(get_session),
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
):
    """
    List all orders, newest first (admin only).
    """
    return order_service.list_all_orders(session, page, limit, status)


@router.put("/orders/{order_id}/status", response_model=OrderRead)
def update_order_status(
    order_id: uuid.UUID,
    payload: OrderStatusUpdate,
    session: Session = Depends(get_session),
):
    """
    Move an order along its lifecycle (admin only).

      pending    -> confirmed, cancelled

      confirmed  -> processing, cancelled

      processing -> shipped, cancelled

      shipped    -> delivered

    Cancelling restores stock.
    """
    return order_service.update_status(session, order_id, payload)
