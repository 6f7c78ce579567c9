# app/repositories/order_repo.py
import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import func, update
from sqlmodel import Session, select

from app.models.order import Order, OrderItem
from app.services.order_number import fallback_order_number

logger = logging.getLogger(__name__)


class OrderRepository:
    """
    Data access layer for orders and order_items.

    NOTE:
      - No commits here; order creation, verification and cancellation are
        multi-step transactions. The service calls session.commit().
    """

    # ---- Orders ----

    def _filtered(self, stmt, user_id: uuid.UUID | None, status: str | None):
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        if status and status != "all":
            stmt = stmt.where(Order.status == status)
        return stmt

    def list_orders(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        status: str | None = None,
        skip: int = 0,
        limit: int = 10,
    ) -> list[Order]:
        stmt = self._filtered(select(Order), user_id, status)
        stmt = stmt.order_by(Order.created_at.desc()).offset(skip).limit(limit)
        return session.exec(stmt).all()

    def count_orders(
        self,
        session: Session,
        user_id: uuid.UUID | None = None,
        status: str | None = None,
    ) -> int:
        stmt = self._filtered(select(func.count()).select_from(Order), user_id, status)
        return int(session.exec(stmt).one() or 0)

    def get_by_id(
        self,
        session: Session,
        order_id: uuid.UUID,
        refresh: bool = False,
    ) -> Order | None:
        return session.get(Order, order_id, populate_existing=refresh)

    def get_by_order_number(
        self,
        session: Session,
        order_number: str,
        refresh: bool = False,
    ) -> Order | None:
        """
        refresh=True re-reads the row even if the order is already loaded
        (needed after a conditional UPDATE).
        """
        stmt = select(Order).where(Order.order_number == order_number)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        return session.exec(stmt).first()

    def order_number_exists(self, session: Session, order_number: str) -> bool:
        return self.get_by_order_number(session, order_number) is not None

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.

        An order that reaches this point without an order number gets a
        fallback one instead of failing the checkout.
        """
        if not order.order_number:
            order.order_number = fallback_order_number()
            logger.warning("Order reached persistence without a number; assigned %s", order.order_number)

        order.recalculate_final_amount()
        session.add(order)
        session.flush()  # Assign PK
        session.refresh(order)
        return order

    # ---- Guarded transitions ----

    def transition_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        from_statuses: set[str],
        values: dict,
    ) -> bool:
        """
        Apply `values` to the order only if its status is still one of
        `from_statuses`. Two admins (or an admin and the customer) acting on
        a stale copy of the same order cannot both move it.

        Returns True if this call performed the transition.
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, Order.status.in_(from_statuses))
            .values(updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        return result.rowcount == 1

    def transition_payment(
        self,
        session: Session,
        order_number: str,
        from_status: str,
        values: dict,
    ) -> bool:
        """
        Apply `values` to the order only if its payment status is still
        `from_status`. A single conditional UPDATE, so concurrent verifies
        of the same reference cannot both take the transition.

        Returns True if this call performed the transition.
        """
        stmt = (
            update(Order)
            .where(
                Order.order_number == order_number,
                Order.payment_status == from_status,
            )
            .values(updated_at=datetime.now(timezone.utc), **values)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)
        return result.rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.position)
        )
        return session.exec(stmt).all()

    def list_items_for_orders(
        self,
        session: Session,
        order_ids: list[uuid.UUID],
    ) -> dict[uuid.UUID, list[OrderItem]]:
        grouped: dict[uuid.UUID, list[OrderItem]] = {oid: [] for oid in order_ids}
        if not order_ids:
            return grouped
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id.in_(order_ids))
            .order_by(OrderItem.position)
        )
        for item in session.exec(stmt).all():
            grouped[item.order_id].append(item)
        return grouped

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items
