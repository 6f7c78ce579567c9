# app/services/stats_service.py
from sqlmodel import Session

from app.repositories.stats_repo import StatsRepository
from app.schemas.stats import (
    AdminDashboardStats,
    LatestOrderSummary,
    LowStockProduct,
    StatusCount,
    TopProduct,
)


class StatsService:
    """
    Orchestrates aggregated admin dashboard statistics.
    """

    def __init__(self, repo: StatsRepository):
        self.repo = repo

    def get_admin_dashboard_stats(
        self,
        session: Session,
        top_n_products: int = 5,
        latest_n_orders: int = 5,
        low_stock_threshold: int = 5,
    ) -> AdminDashboardStats:
        orders_by_status = [
            StatusCount(status=status, count=int(count or 0))
            for status, count in self.repo.orders_by_status(session)
        ]

        top_products: list[TopProduct] = []
        for product_id, name, total_quantity, product_revenue in self.repo.top_products(
            session, limit=top_n_products
        ):
            top_products.append(
                TopProduct(
                    product_id=product_id,
                    name=name,
                    total_quantity=int(total_quantity or 0),
                    total_revenue=float(product_revenue or 0.0),
                )
            )

        low_stock = [
            LowStockProduct(id=p.id, name=p.name, stock=p.stock)
            for p in self.repo.low_stock_products(session, threshold=low_stock_threshold)
        ]

        latest_orders: list[LatestOrderSummary] = []
        for o, u in self.repo.latest_orders(session, limit=latest_n_orders):
            latest_orders.append(
                LatestOrderSummary(
                    id=o.id,
                    order_number=o.order_number,
                    created_at=o.created_at,
                    user_id=o.user_id,
                    customer_name=f"{u.first_name} {u.last_name}".strip(),
                    final_amount=o.final_amount,
                    status=o.status,
                    payment_status=o.payment_status,
                )
            )

        return AdminDashboardStats(
            users_count=self.repo.count_users(session),
            products_count=self.repo.count_products(session),
            orders_count=self.repo.count_orders(session),
            total_sales=self.repo.total_sales(session),
            orders_by_status=orders_by_status,
            top_products=top_products,
            low_stock_products=low_stock,
            recent_orders=latest_orders,
        )
