# app/services/order_service.py
import logging
import math
import uuid
from datetime import datetime, timezone

from sqlalchemy import case
from sqlmodel import Session

from app.core.config import Settings, get_settings
from app.core.exceptions import (
    Forbidden,
    InvalidState,
    OrderNotFound,
    PaymentDeclined,
    PaymentGatewayUnavailable,
    PaymentPending,
    ProductNotFound,
    InsufficientStock,
    ShopError,
    ValidationError,
)
from app.models.order import Order, OrderItem
from app.models.product import Product
from app.models.user import User
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    OrderCheckoutResult,
    OrderCreate,
    OrderItemRead,
    OrderPage,
    OrderRead,
    OrderStatusUpdate,
    OrderSummaryRead,
    Pagination,
    PaymentRead,
    ShippingAddressRead,
)
from app.services.notification_service import NotificationService
from app.services.order_number import fallback_order_number, generate_order_number
from app.services.payment_gateway import (
    PaymentGateway,
    PaymentInitRequest,
    PaymentVerification,
    to_minor_units,
)

logger = logging.getLogger(__name__)

# Order lifecycle as driven by admins. Customers may only cancel, and only
# from CUSTOMER_CANCELLABLE.
ORDER_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"confirmed", "cancelled"},
    "confirmed": {"processing", "cancelled"},
    "processing": {"shipped", "cancelled"},
    "shipped": {"delivered"},
    "delivered": set(),
    "cancelled": set(),
}
CUSTOMER_CANCELLABLE = {"pending", "confirmed"}

# Payment sub-record: pending -> successful | failed | cancelled, applied
# only through OrderRepository.transition_payment guarded on "pending".
# successful -> refunded is a manual step outside this service.

PAYMENT_UNAVAILABLE_WARNING = (
    "Payment gateway temporarily unavailable. Your order is saved and will be "
    "processed once payment is confirmed."
)


def can_transition(table: dict[str, set[str]], current: str, new: str) -> bool:
    return new in table.get(current, set())


class OrderService:
    """
    Business logic for orders.

    Responsibilities:
      - Create an order from the submitted cart (prices from the catalog)
      - Reserve stock atomically, all-or-nothing across the cart
      - Initialize payment; a gateway failure never discards the order
      - Verify payment with guarded, idempotent status transitions
      - Customer cancellation with stock release
      - Admin status transitions
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        product_repo: ProductRepository,
        notifications: NotificationService,
        settings: Settings | None = None,
    ):
        self.order_repo = order_repo
        self.product_repo = product_repo
        self.notifications = notifications
        self.settings = settings or get_settings()

    # -------- Checkout --------

    def create_order(
        self,
        session: Session,
        user: User,
        payload: OrderCreate,
        gateway: PaymentGateway,
    ) -> OrderCheckoutResult:
        """
        Steps:
          1. Resolve every cart line against the catalog
             (ProductNotFound / InsufficientStock).
          2. Compute subtotal from current catalog prices; apply
             shipping/tax rules.
          3. Generate the order number and persist the order + items.
          4. Reserve stock per line, in cart order, in the same transaction.
             Any failure rolls everything back.
          5. Record the confirmation notification and commit.
          6. Initialize payment. Gateway trouble turns into a warning on the
             result; the committed order stays.
        """
        products = self._resolve_cart(session, payload)

        subtotal = 0.0
        for line, product in zip(payload.items, products):
            subtotal += product.price * line.quantity
        subtotal = round(subtotal, 2)

        shipping_fee = self.settings.SHIPPING_FEE
        tax_amount = round(subtotal * self.settings.TAX_RATE, 2)
        discount_amount = 0.0

        address = payload.shipping_address
        order = Order(
            order_number=self._new_order_number(session),
            user_id=user.id,
            shipping_first_name=address.first_name,
            shipping_last_name=address.last_name,
            shipping_email=address.email,
            shipping_phone=address.phone,
            shipping_address=address.address,
            shipping_city=address.city,
            shipping_state=address.state,
            shipping_zip_code=address.zip_code,
            shipping_country=address.country or self.settings.DEFAULT_COUNTRY,
            status="pending",
            payment_status="pending",
            payment_currency=self.settings.PAYMENT_CURRENCY,
            payment_amount=0.0,
            total_amount=subtotal,
            shipping_fee=shipping_fee,
            tax_amount=tax_amount,
            discount_amount=discount_amount,
            notes=payload.notes or "",
        )
        order.payment_amount = order.recalculate_final_amount()

        try:
            order = self.order_repo.create_order(session, order)

            items = [
                OrderItem(
                    order_id=order.id,
                    position=idx,
                    product_id=product.id,
                    name=product.name,
                    price=product.price,
                    quantity=line.quantity,
                    size=line.size or "",
                    color=line.color or "",
                    image=product.image_url or "",
                )
                for idx, (line, product) in enumerate(zip(payload.items, products))
            ]
            items = self.order_repo.create_items(session, items)

            for item in items:
                self.product_repo.reserve_stock(session, item.product_id, item.quantity)

            self.notifications.order_received(session, order)
            session.commit()
        except ShopError:
            session.rollback()
            raise
        except Exception:
            session.rollback()
            logger.exception("Order persistence failed for user %s", user.id)
            raise

        # Everything below runs after commit: the order exists from here on.

        session.refresh(order)
        logger.info(
            "Order %s created for user %s: %s items, final amount %s",
            order.order_number,
            user.id,
            len(items),
            order.final_amount,
        )

        order_read = self.build_order_read(order, items)
        try:
            init = gateway.initialize(self._payment_request(order))
        except (PaymentGatewayUnavailable, PaymentDeclined) as exc:
            logger.error(
                "Payment initialization failed for order %s (%s): %s",
                order.order_number,
                exc.kind,
                exc.message,
            )
            return OrderCheckoutResult(
                message=(
                    "Order created successfully. "
                    "Please contact support for payment instructions."
                ),
                order=order_read,
                payment_link=None,
                warning=PAYMENT_UNAVAILABLE_WARNING,
                order_number=order.order_number,
                support_email=self.settings.SUPPORT_EMAIL,
                support_phone=self.settings.SUPPORT_PHONE,
            )

        return OrderCheckoutResult(
            message="Order created successfully. Redirecting to payment...",
            order=order_read,
            payment_link=init.redirect_url,
            reference=init.gateway_reference,
        )

    def _resolve_cart(self, session: Session, payload: OrderCreate) -> list[Product]:
        """
        Load the product for every line, in cart order.

        This is a fast, friendly pre-check; the authoritative stock check is
        the conditional UPDATE in reserve_stock.
        """
        products: list[Product] = []
        requested: dict[uuid.UUID, int] = {}

        for line in payload.items:
            product = self.product_repo.get_by_id(session, line.product_id)
            if product is None or not product.is_active:
                raise ProductNotFound(
                    f"Product {line.product_id} not found",
                    product_id=str(line.product_id),
                )

            requested[product.id] = requested.get(product.id, 0) + line.quantity
            if product.stock < requested[product.id]:
                raise InsufficientStock(
                    product.id, product.name, product.stock, requested[product.id]
                )
            products.append(product)

        return products

    def _new_order_number(self, session: Session) -> str:
        order_number = generate_order_number()
        while self.order_repo.order_number_exists(session, order_number):
            logger.warning("Order number %s already taken; using fallback scheme", order_number)
            order_number = fallback_order_number()
        return order_number

    def _payment_request(self, order: Order) -> PaymentInitRequest:
        frontend = self.settings.FRONTEND_URL.rstrip("/")
        return PaymentInitRequest(
            amount_minor_units=to_minor_units(order.final_amount),
            currency=order.payment_currency,
            buyer_email=order.shipping_email,
            reference=order.order_number,
            callback_url=f"{frontend}/order-confirmation/{order.id}",
            metadata={
                "order_id": str(order.id),
                "customer_name": f"{order.shipping_first_name} {order.shipping_last_name}",
                "custom_fields": [
                    {
                        "display_name": "Order Number",
                        "variable_name": "order_number",
                        "value": order.order_number,
                    },
                    {
                        "display_name": "Customer Phone",
                        "variable_name": "customer_phone",
                        "value": order.shipping_phone,
                    },
                ],
            },
        )

    # -------- Payment verification --------

    def verify_payment(
        self,
        session: Session,
        reference: str | None,
        gateway: PaymentGateway,
        order_id: uuid.UUID | None = None,
    ) -> OrderRead:
        """
        Verify the gateway transaction for `reference` (the order number)
        and move the payment out of `pending`.

        Safe to call repeatedly: once the payment is `successful`, further
        calls return the order unchanged and record no new notification.

        Raises:
            ValidationError: missing reference.
            OrderNotFound: no order for the reference (or order_id mismatch).
            PaymentPending: gateway has no final outcome yet; nothing recorded.
            PaymentDeclined: gateway reported a failed or reversed transaction.
            InvalidState: gateway success for a payment that is no longer
              pending (failed/cancelled/refunded).
            PaymentGatewayUnavailable: gateway unreachable after retries.
        """
        reference = (reference or "").strip()
        if not reference:
            raise ValidationError("Payment reference is required", field="reference")

        order = self.order_repo.get_by_order_number(session, reference)
        if order is None or (order_id is not None and order.id != order_id):
            raise OrderNotFound()

        if order.payment_status == "successful":
            logger.info("Payment for %s already verified; nothing to do", reference)
            return self._order_read(session, order)

        verification = self._verify_with_retry(gateway, reference)

        if verification.pending:
            logger.info(
                "Payment for %s not settled yet (%s); left pending",
                reference,
                verification.raw_status,
            )
            raise PaymentPending(
                "Payment not completed yet. Please try again shortly.",
                raw_status=verification.raw_status,
            )

        if verification.succeeded:
            return self._record_payment_success(session, order, verification)
        return self._record_payment_failure(session, order, verification)

    def _verify_with_retry(self, gateway: PaymentGateway, reference: str) -> PaymentVerification:
        # verify is read-only on the gateway side, so retrying it is safe
        attempts = 1 + max(0, self.settings.PAYMENT_VERIFY_RETRIES)
        attempt = 1
        while True:
            try:
                return gateway.verify(reference)
            except PaymentGatewayUnavailable as exc:
                logger.warning(
                    "Verify %s failed (attempt %s/%s): %s",
                    reference,
                    attempt,
                    attempts,
                    exc.message,
                )
                if attempt >= attempts:
                    raise
                attempt += 1

    def _record_payment_success(
        self,
        session: Session,
        order: Order,
        verification: PaymentVerification,
    ) -> OrderRead:
        values = {
            "payment_status": "successful",
            "payment_transaction_id": verification.external_transaction_id,
            "payment_reference": verification.gateway_reference or order.order_number,
            "paid_at": datetime.now(timezone.utc),
            # Decided on the current row, not on the copy loaded above.
            "status": case((Order.status == "pending", "confirmed"), else_=Order.status),
        }

        try:
            moved = self.order_repo.transition_payment(
                session, order.order_number, "pending", values
            )
            order = self.order_repo.get_by_order_number(
                session, order.order_number, refresh=True
            )
            if moved:
                self.notifications.payment_succeeded(session, order)
            session.commit()
        except Exception:
            session.rollback()
            raise

        if moved:
            logger.info("Payment for %s verified; order is %s", order.order_number, order.status)
        elif order.payment_status != "successful":
            raise InvalidState(
                f"Payment for order #{order.order_number} is {order.payment_status} "
                "and cannot be marked successful",
            )

        return self._order_read(session, order)

    def _record_payment_failure(
        self,
        session: Session,
        order: Order,
        verification: PaymentVerification,
    ) -> OrderRead:
        values = {
            "payment_status": "failed",
            "status": case((Order.status == "confirmed", "pending"), else_=Order.status),
        }

        try:
            moved = self.order_repo.transition_payment(
                session, order.order_number, "pending", values
            )
            session.commit()
        except Exception:
            session.rollback()
            raise

        logger.warning(
            "Payment for %s not successful (%s); recorded=%s",
            order.order_number,
            verification.raw_status,
            moved,
        )
        raise PaymentDeclined(
            f"Payment {verification.raw_status}",
            raw_status=verification.raw_status,
        )

    # -------- Customer operations --------

    def list_user_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> OrderPage:
        return self._page(session, user_id, page, limit, status)

    def recent_orders(
        self,
        session: Session,
        user_id: uuid.UUID,
        limit: int = 5,
    ) -> list[OrderSummaryRead]:
        orders = self.order_repo.list_orders(session, user_id=user_id, limit=limit)
        return [OrderSummaryRead.model_validate(o, from_attributes=True) for o in orders]

    def get_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
    ) -> OrderRead:
        """
        Owner or admin only.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()
        if order.user_id != user.id and not user.is_admin:
            raise Forbidden("Not authorized to view this order")
        return self._order_read(session, order)

    def cancel_order(
        self,
        session: Session,
        user: User,
        order_id: uuid.UUID,
        reason: str | None = None,
    ) -> OrderRead:
        """
        Customer cancellation: owner only, from pending/confirmed only.
        Releases stock for every line item.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()
        if order.user_id != user.id:
            raise Forbidden("Not authorized to cancel this order")
        if order.status not in CUSTOMER_CANCELLABLE:
            raise InvalidState(
                "Order cannot be cancelled at this stage",
                status=order.status,
            )

        order = self._cancel(session, order, reason, CUSTOMER_CANCELLABLE)
        return self._order_read(session, order)

    def _cancel(
        self,
        session: Session,
        order: Order,
        reason: str | None,
        from_statuses: set[str],
    ) -> Order:
        """
        Cancel the order if its stored status is still in `from_statuses`.

        Only the call whose conditional UPDATE moved the order releases
        stock; a repeated or concurrent cancel gets InvalidState. A pending
        payment becomes `cancelled`; a payment that succeeded meanwhile stays
        `successful` for a manual refund.
        """
        values = {
            "status": "cancelled",
            "cancelled_at": datetime.now(timezone.utc),
            "cancellation_reason": (reason or "").strip(),
        }
        try:
            moved = self.order_repo.transition_status(session, order.id, from_statuses, values)
            if moved:
                self.order_repo.transition_payment(
                    session, order.order_number, "pending", {"payment_status": "cancelled"}
                )
                for item in self.order_repo.list_items_for_order(session, order.id):
                    self.product_repo.release_stock(session, item.product_id, item.quantity)

                order = self.order_repo.get_by_id(session, order.id, refresh=True)
                self.notifications.order_cancelled(session, order)
            session.commit()
        except Exception:
            session.rollback()
            raise

        if not moved:
            raise self._refused(session, order.id, "Order cannot be cancelled at this stage")

        session.refresh(order)
        logger.info("Order %s cancelled", order.order_number)
        return order

    def _refused(self, session: Session, order_id: uuid.UUID, message: str) -> InvalidState:
        current = self.order_repo.get_by_id(session, order_id, refresh=True)
        logger.warning("Order %s changed underneath the request: %s", order_id, message)
        return InvalidState(message, status=current.status if current else None)

    # -------- Admin operations --------

    def list_all_orders(
        self,
        session: Session,
        page: int = 1,
        limit: int = 10,
        status: str | None = None,
    ) -> OrderPage:
        return self._page(session, None, page, limit, status)

    def update_status(
        self,
        session: Session,
        order_id: uuid.UUID,
        payload: OrderStatusUpdate,
    ) -> OrderRead:
        """
        Admin-only status update with the lifecycle state machine:

          pending    -> confirmed, cancelled
          confirmed  -> processing, cancelled
          processing -> shipped, cancelled
          shipped    -> delivered
          delivered  -> (terminal)
          cancelled  -> (terminal)

        The transition is checked against the loaded status and applied with
        a conditional UPDATE on that same status, so an order that moved in
        the meantime is refused rather than overwritten.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None:
            raise OrderNotFound()

        current = order.status
        new = payload.status

        if current == new:
            if payload.tracking_number is None:
                return self._order_read(session, order)
            values = {"tracking_number": payload.tracking_number}
        elif not can_transition(ORDER_TRANSITIONS, current, new):
            raise InvalidState(
                f"Invalid status transition: {current} -> {new}",
                status=current,
            )
        elif new == "cancelled":
            order = self._cancel(session, order, "Cancelled by admin", {current})
            return self._order_read(session, order)
        else:
            values = {"status": new}
            if payload.tracking_number is not None:
                values["tracking_number"] = payload.tracking_number
            if new == "delivered":
                values["delivered_at"] = datetime.now(timezone.utc)

        try:
            moved = self.order_repo.transition_status(session, order.id, {current}, values)
            if moved:
                order = self.order_repo.get_by_id(session, order.id, refresh=True)
                if new != current:
                    self.notifications.order_status_changed(session, order)
            session.commit()
        except Exception:
            session.rollback()
            raise

        if not moved:
            raise self._refused(
                session, order.id, f"Invalid status transition: {current} -> {new}"
            )

        session.refresh(order)
        logger.info("Order %s moved %s -> %s", order.order_number, current, new)
        return self._order_read(session, order)

    # -------- Helper DTO builders --------

    def _page(
        self,
        session: Session,
        user_id: uuid.UUID | None,
        page: int,
        limit: int,
        status: str | None,
    ) -> OrderPage:
        page = max(page, 1)
        limit = max(limit, 1)
        orders = self.order_repo.list_orders(
            session,
            user_id=user_id,
            status=status,
            skip=(page - 1) * limit,
            limit=limit,
        )
        total = self.order_repo.count_orders(session, user_id=user_id, status=status)
        items_by_order = self.order_repo.list_items_for_orders(
            session, [o.id for o in orders]
        )
        return OrderPage(
            orders=[self.build_order_read(o, items_by_order[o.id]) for o in orders],
            pagination=Pagination(
                current_page=page,
                total_pages=math.ceil(total / limit),
                total_orders=total,
            ),
        )

    def _order_read(self, session: Session, order: Order) -> OrderRead:
        items = self.order_repo.list_items_for_order(session, order.id)
        return self.build_order_read(order, items)

    @staticmethod
    def build_order_read(order: Order, items: list[OrderItem]) -> OrderRead:
        """
        Compose OrderRead from ORM rows, re-nesting shipping and payment.
        """
        return OrderRead(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            items=[
                OrderItemRead(
                    id=it.id,
                    product_id=it.product_id,
                    name=it.name,
                    price=it.price,
                    quantity=it.quantity,
                    size=it.size,
                    color=it.color,
                    image=it.image,
                    line_total=round(it.price * it.quantity, 2),
                )
                for it in items
            ],
            shipping_address=ShippingAddressRead(
                first_name=order.shipping_first_name,
                last_name=order.shipping_last_name,
                email=order.shipping_email,
                phone=order.shipping_phone,
                address=order.shipping_address,
                city=order.shipping_city,
                state=order.shipping_state,
                zip_code=order.shipping_zip_code,
                country=order.shipping_country,
            ),
            payment=PaymentRead(
                status=order.payment_status,
                method=order.payment_method,
                reference=order.payment_reference,
                transaction_id=order.payment_transaction_id,
                amount=order.payment_amount,
                currency=order.payment_currency,
                paid_at=order.paid_at,
            ),
            status=order.status,
            total_amount=order.total_amount,
            shipping_fee=order.shipping_fee,
            tax_amount=order.tax_amount,
            discount_amount=order.discount_amount,
            final_amount=order.final_amount,
            notes=order.notes,
            tracking_number=order.tracking_number,
            delivered_at=order.delivered_at,
            cancelled_at=order.cancelled_at,
            cancellation_reason=order.cancellation_reason,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )
