# app/repositories/stats_repo.py
from sqlalchemy import func
from sqlmodel import Session, select

from app.models.user import User
from app.models.order import Order, OrderItem
from app.models.product import Product


class StatsRepository:
    """
    Read-only aggregated queries for admin dashboard.
    """

    def count_users(self, session: Session) -> int:
        stmt = select(func.count()).select_from(User)
        # SQLModel's Session.exec() -> ScalarResult -> use .one()
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_products(self, session: Session) -> int:
        stmt = select(func.count()).select_from(Product)
        value = session.exec(stmt).one()
        return int(value or 0)

    def count_orders(self, session: Session) -> int:
        stmt = select(func.count()).select_from(Order)
        value = session.exec(stmt).one()
        return int(value or 0)

    def total_sales(self, session: Session) -> float:
        """
        Sum of items subtotal (total_amount) for orders whose payment
        was successful.
        """
        stmt = (
            select(func.coalesce(func.sum(Order.total_amount), 0.0))
            .where(Order.payment_status == "successful")
        )
        value = session.exec(stmt).one()
        return float(value or 0.0)

    def orders_by_status(self, session: Session) -> list[tuple]:
        stmt = (
            select(Order.status, func.count(Order.id))
            .group_by(Order.status)
            .order_by(Order.status)
        )
        return list(session.exec(stmt).all())

    def low_stock_products(
        self,
        session: Session,
        threshold: int = 5,
        limit: int = 10,
    ) -> list[Product]:
        stmt = (
            select(Product)
            .where(Product.is_active == True, Product.stock <= threshold)  # noqa: E712
            .order_by(Product.stock, Product.name)
            .limit(limit)
        )
        return list(session.exec(stmt).all())

    def top_products(
        self,
        session: Session,
        limit: int = 5,
    ) -> list[tuple]:
        """
        Top products by quantity sold across all non-cancelled orders.
        Names come from the line-item snapshot, so deleted products still show.
        """
        qty_sum = func.coalesce(func.sum(OrderItem.quantity), 0)
        revenue_sum = func.coalesce(
            func.sum(OrderItem.quantity * OrderItem.price),
            0.0,
        )

        stmt = (
            select(
                OrderItem.product_id,
                func.max(OrderItem.name),
                qty_sum.label("total_quantity"),
                revenue_sum.label("total_revenue"),
            )
            .join(Order, Order.id == OrderItem.order_id)
            .where(Order.status != "cancelled")
            .group_by(OrderItem.product_id)
            .order_by(qty_sum.desc())
            .limit(limit)
        )

        return list(session.exec(stmt).all())

    def latest_orders(
        self,
        session: Session,
        limit: int = 5,
    ) -> list[tuple[Order, User]]:
        """
        Latest N orders by created_at (any status), with their customer.
        """
        stmt = (
            select(Order, User)
            .join(User, User.id == Order.user_id)
            .order_by(Order.created_at.desc())
            .limit(limit)
        )
        return list(session.exec(stmt).all())
