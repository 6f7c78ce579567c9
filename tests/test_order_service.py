"""Tests for OrderService: checkout, payment verification, cancellation."""

import uuid

import pytest
from sqlalchemy import func, update
from sqlmodel import Session, select

from app.core.exceptions import (
    Forbidden,
    InsufficientStock,
    InvalidState,
    OrderNotFound,
    PaymentDeclined,
    PaymentGatewayUnavailable,
    PaymentPending,
    ProductNotFound,
    ValidationError,
)
from app.models.notification import Notification
from app.models.order import Order
from app.models.product import Product
from app.schemas.order import OrderCreate, OrderStatusUpdate
from app.services import order_service as order_service_module
from app.services.order_service import PAYMENT_UNAVAILABLE_WARNING

from conftest import checkout_payload, failure, pending, success


def cart(*lines, **address):
    return OrderCreate.model_validate(checkout_payload(*lines, **address))


def order_count(session):
    return session.exec(select(func.count()).select_from(Order)).one()


def stock_of(session, product):
    return session.get(Product, product.id, populate_existing=True).stock


@pytest.fixture
def fixed_number(monkeypatch):
    monkeypatch.setattr(order_service_module, "generate_order_number", lambda: "HW12345678")
    return "HW12345678"


class TestCreateOrder:
    def test_two_units_of_one_product(self, session, service, gateway, customer, make_product):
        product = make_product(name="Chiffon Hijab", price=5000, stock=10)

        result = service.create_order(session, customer, cart((product, 2)), gateway)

        order = result.order
        assert order.status == "pending"
        assert order.payment.status == "pending"
        assert order.total_amount == 10000
        assert order.final_amount == 10000
        assert order.payment.amount == 10000
        assert len(order.items) == 1
        assert order.items[0].price == 5000
        assert order.items[0].quantity == 2
        assert order.items[0].name == "Chiffon Hijab"
        assert stock_of(session, product) == 8

        assert result.payment_link == f"https://checkout.paystack.test/{order.order_number}"
        assert result.reference == order.order_number
        assert result.warning is None

    def test_payment_request_uses_order_number_and_minor_units(
        self, session, service, gateway, customer, make_product
    ):
        product = make_product(price=5000)
        result = service.create_order(session, customer, cart((product, 2)), gateway)

        request = gateway.init_calls[0]
        assert request.reference == result.order.order_number
        assert request.amount_minor_units == 1_000_000
        assert request.currency == "NGN"
        assert request.buyer_email == "aisha@gmail.com"
        assert request.callback_url.endswith(f"/order-confirmation/{result.order.id}")

    def test_default_tax_rule_adds_subtotal_again(
        self, session, service_factory, gateway, customer, make_product
    ):
        service = service_factory()
        product = make_product(price=5000)

        order = service.create_order(session, customer, cart((product, 2)), gateway).order

        assert order.total_amount == 10000
        assert order.tax_amount == 10000
        assert order.final_amount == 20000

    def test_final_amount_formula(self, session, service_factory, gateway, customer, make_product):
        service = service_factory(TAX_RATE=0.075, SHIPPING_FEE=1500)
        first = make_product(name="Jersey Hijab", price=2500)
        second = make_product(name="Plain Abaya", price=18000, category="abaya")

        order = service.create_order(
            session, customer, cart((first, 3), (second, 1)), gateway
        ).order

        assert order.total_amount == 25500
        assert order.shipping_fee == 1500
        assert order.tax_amount == pytest.approx(1912.5)
        expected = order.total_amount + order.shipping_fee + order.tax_amount - order.discount_amount
        assert order.final_amount == pytest.approx(expected)

    def test_items_keep_cart_order(self, session, service, gateway, customer, make_product):
        products = [make_product(name=f"Hijab {i}", price=1000 + i) for i in range(4)]
        lines = [(p, 1) for p in reversed(products)]

        order = service.create_order(session, customer, cart(*lines), gateway).order

        assert [item.product_id for item in order.items] == [p.id for p in reversed(products)]

    def test_price_comes_from_catalog(self, session, service, gateway, customer, make_product):
        product = make_product(price=7000)
        payload = checkout_payload((product, 1))
        payload["items"][0]["price"] = 1
        payload["items"][0]["name"] = "Free hijab"

        order = service.create_order(
            session, customer, OrderCreate.model_validate(payload), gateway
        ).order

        assert order.items[0].price == 7000
        assert order.items[0].name == product.name

    def test_insufficient_stock_rejects_order(
        self, session, service, gateway, customer, make_product
    ):
        product = make_product(name="Lace Jalabiya", stock=1, category="jalabiya")

        with pytest.raises(InsufficientStock) as exc_info:
            service.create_order(session, customer, cart((product, 3)), gateway)

        assert "Lace Jalabiya" in exc_info.value.message
        assert stock_of(session, product) == 1
        assert order_count(session) == 0
        assert gateway.init_calls == []

    def test_duplicate_lines_are_checked_together(
        self, session, service, gateway, customer, make_product
    ):
        product = make_product(stock=3)

        with pytest.raises(InsufficientStock):
            service.create_order(session, customer, cart((product, 2), (product, 2)), gateway)

        assert stock_of(session, product) == 3

    def test_unknown_product(self, session, service, gateway, customer):
        missing = Product(id=uuid.uuid4(), name="Ghost", slug="ghost", price=1, category="hijab")

        with pytest.raises(ProductNotFound):
            service.create_order(session, customer, cart((missing, 1)), gateway)

        assert order_count(session) == 0

    def test_inactive_product_cannot_be_ordered(
        self, session, service, gateway, customer, make_product
    ):
        product = make_product(is_active=False)

        with pytest.raises(ProductNotFound):
            service.create_order(session, customer, cart((product, 1)), gateway)

    def test_failed_reservation_rolls_back_whole_order(
        self, session, service, gateway, customer, make_product, monkeypatch
    ):
        first = make_product(name="Chiffon Hijab", stock=5)
        second = make_product(name="Silk Abaya", stock=5, category="abaya")

        resolve = service._resolve_cart

        def resolve_then_sell_out(session_, payload):
            products = resolve(session_, payload)
            # another checkout takes the last units after the pre-check
            session_.exec(update(Product).where(Product.id == second.id).values(stock=0))
            return products

        monkeypatch.setattr(service, "_resolve_cart", resolve_then_sell_out)

        with pytest.raises(InsufficientStock):
            service.create_order(session, customer, cart((first, 2), (second, 1)), gateway)

        assert stock_of(session, first) == 5
        assert order_count(session) == 0
        assert session.exec(select(func.count()).select_from(Notification)).one() == 0

    def test_records_confirmation_notification(
        self, session, service, gateway, customer, make_product, notification_repo
    ):
        product = make_product()
        order = service.create_order(session, customer, cart((product, 1)), gateway).order

        assert notification_repo.count_for_order(session, order.id, "order_confirm") == 1

    @pytest.mark.parametrize(
        "error",
        [
            PaymentGatewayUnavailable("Payment gateway timed out after 15.0s"),
            PaymentDeclined("Invalid key", raw_status="declined"),
        ],
    )
    def test_gateway_failure_keeps_order(
        self, session, service, gateway, customer, make_product, error
    ):
        product = make_product(stock=10)
        gateway.init_error = error

        result = service.create_order(session, customer, cart((product, 2)), gateway)

        assert result.success is True
        assert result.payment_link is None
        assert result.warning == PAYMENT_UNAVAILABLE_WARNING
        assert result.order_number == result.order.order_number
        assert result.support_email
        assert order_count(session) == 1
        assert stock_of(session, product) == 8

    def test_taken_order_number_falls_back(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product(stock=10)
        first = service.create_order(session, customer, cart((product, 1)), gateway).order
        second = service.create_order(session, customer, cart((product, 1)), gateway).order

        assert first.order_number == fixed_number
        assert second.order_number.startswith("HW-FB")


class TestVerifyPayment:
    def test_success_confirms_order(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)
        gateway.verify_results = [success(fixed_number, transaction_id="4099260516")]

        order = service.verify_payment(session, fixed_number, gateway)

        assert order.status == "confirmed"
        assert order.payment.status == "successful"
        assert order.payment.transaction_id == "4099260516"
        assert order.payment.reference == fixed_number
        assert order.payment.paid_at is not None

    def test_second_verify_is_a_no_op(
        self, session, service, gateway, customer, make_product, notification_repo, fixed_number
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        first = service.verify_payment(session, fixed_number, gateway)
        second = service.verify_payment(session, fixed_number, gateway)

        assert first.payment.status == second.payment.status == "successful"
        assert second.payment.paid_at == first.payment.paid_at
        assert len(gateway.verify_calls) == 1
        assert notification_repo.count_for_order(session, created.id, "payment_success") == 1

    def test_failure_marks_payment_failed(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)
        gateway.verify_results = [failure(fixed_number, raw_status="reversed")]

        with pytest.raises(PaymentDeclined) as exc_info:
            service.verify_payment(session, fixed_number, gateway)

        assert exc_info.value.raw_status == "reversed"
        order = session.exec(select(Order).where(Order.order_number == fixed_number)).one()
        session.refresh(order)
        assert order.payment_status == "failed"
        assert order.status == "pending"

    def test_success_after_failure_is_refused(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)
        gateway.verify_results = [failure(fixed_number), success(fixed_number)]

        with pytest.raises(PaymentDeclined):
            service.verify_payment(session, fixed_number, gateway)
        with pytest.raises(InvalidState):
            service.verify_payment(session, fixed_number, gateway)

    @pytest.mark.parametrize("raw_status", ["abandoned", "ongoing", "processing"])
    def test_unsettled_payment_can_still_succeed(
        self, session, service, gateway, customer, make_product, notification_repo,
        fixed_number, raw_status,
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        gateway.verify_results = [pending(fixed_number, raw_status=raw_status), success(fixed_number)]

        with pytest.raises(PaymentPending) as exc_info:
            service.verify_payment(session, fixed_number, gateway)

        assert exc_info.value.raw_status == raw_status
        order = session.get(Order, created.id, populate_existing=True)
        assert order.payment_status == "pending"
        assert order.status == "pending"

        order = service.verify_payment(session, fixed_number, gateway)

        assert order.status == "confirmed"
        assert order.payment.status == "successful"
        assert notification_repo.count_for_order(session, created.id, "payment_success") == 1

    def test_retries_transient_gateway_errors(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)
        gateway.verify_results = [
            PaymentGatewayUnavailable("Payment gateway returned HTTP 502"),
            success(fixed_number),
        ]

        order = service.verify_payment(session, fixed_number, gateway)

        assert order.payment.status == "successful"
        assert len(gateway.verify_calls) == 2

    def test_gives_up_after_retries(
        self, session, service_factory, gateway, customer, make_product, fixed_number
    ):
        service = service_factory(TAX_RATE=0.0, PAYMENT_VERIFY_RETRIES=1)
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)
        gateway.verify_results = [
            PaymentGatewayUnavailable("down"),
            PaymentGatewayUnavailable("still down"),
            success(fixed_number),
        ]

        with pytest.raises(PaymentGatewayUnavailable):
            service.verify_payment(session, fixed_number, gateway)

        assert len(gateway.verify_calls) == 2
        order = session.exec(select(Order).where(Order.order_number == fixed_number)).one()
        assert order.payment_status == "pending"

    def test_unknown_reference(self, session, service, gateway):
        with pytest.raises(OrderNotFound):
            service.verify_payment(session, "HW00000000ZZZZZZ", gateway)
        assert gateway.verify_calls == []

    @pytest.mark.parametrize("reference", [None, "", "   "])
    def test_missing_reference(self, session, service, gateway, reference):
        with pytest.raises(ValidationError):
            service.verify_payment(session, reference, gateway)

    def test_order_id_must_match_reference(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product()
        service.create_order(session, customer, cart((product, 1)), gateway)

        with pytest.raises(OrderNotFound):
            service.verify_payment(session, fixed_number, gateway, order_id=uuid.uuid4())


class TestCancelOrder:
    def test_cancel_pending_restores_stock(
        self, session, service, gateway, customer, make_product, notification_repo
    ):
        first = make_product(stock=10)
        second = make_product(name="Plain Abaya", stock=4, category="abaya")
        created = service.create_order(
            session, customer, cart((first, 3), (second, 2)), gateway
        ).order
        assert stock_of(session, first) == 7

        order = service.cancel_order(session, customer, created.id, "Changed my mind")

        assert order.status == "cancelled"
        assert order.cancelled_at is not None
        assert order.cancellation_reason == "Changed my mind"
        assert order.payment.status == "cancelled"
        assert stock_of(session, first) == 10
        assert stock_of(session, second) == 4
        assert notification_repo.count_for_order(session, created.id, "system") == 1

    def test_cancel_confirmed_order(
        self, session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product(stock=5)
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        service.verify_payment(session, fixed_number, gateway)

        order = service.cancel_order(session, customer, created.id)

        assert order.status == "cancelled"
        # a successful payment is kept for refund handling
        assert order.payment.status == "successful"
        assert stock_of(session, product) == 5

    @pytest.mark.parametrize("status", ["processing", "shipped", "delivered", "cancelled"])
    def test_cancel_refused_after_processing_starts(
        self, session, service, gateway, customer, make_product, status
    ):
        product = make_product(stock=5)
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        order = session.get(Order, created.id)
        order.status = status
        session.add(order)
        session.commit()

        with pytest.raises(InvalidState) as exc_info:
            service.cancel_order(session, customer, created.id)

        assert exc_info.value.extra["status"] == status
        assert stock_of(session, product) == 4

    def test_only_owner_can_cancel(
        self, session, service, gateway, customer, other_customer, make_product
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        with pytest.raises(Forbidden):
            service.cancel_order(session, other_customer, created.id)

    def test_unknown_order(self, session, service, customer):
        with pytest.raises(OrderNotFound):
            service.cancel_order(session, customer, uuid.uuid4())


class TestReadOrders:
    def test_owner_and_admin_can_read(
        self, session, service, gateway, customer, admin, make_product
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        assert service.get_order(session, customer, created.id).id == created.id
        assert service.get_order(session, admin, created.id).id == created.id

    def test_other_customer_is_forbidden(
        self, session, service, gateway, customer, other_customer, make_product
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        with pytest.raises(Forbidden):
            service.get_order(session, other_customer, created.id)

    def test_list_user_orders_paginates(
        self, session, service, gateway, customer, other_customer, make_product
    ):
        product = make_product(stock=50)
        for _ in range(3):
            service.create_order(session, customer, cart((product, 1)), gateway)
        service.create_order(session, other_customer, cart((product, 1)), gateway)

        page = service.list_user_orders(session, customer.id, page=1, limit=2)

        assert len(page.orders) == 2
        assert page.pagination.total_orders == 3
        assert page.pagination.total_pages == 2
        assert all(o.user_id == customer.id for o in page.orders)

    def test_status_filter(self, session, service, gateway, customer, make_product):
        product = make_product(stock=50)
        kept = service.create_order(session, customer, cart((product, 1)), gateway).order
        dropped = service.create_order(session, customer, cart((product, 1)), gateway).order
        service.cancel_order(session, customer, dropped.id)

        pending = service.list_user_orders(session, customer.id, status="pending")
        everything = service.list_user_orders(session, customer.id, status="all")

        assert [o.id for o in pending.orders] == [kept.id]
        assert everything.pagination.total_orders == 2

    def test_recent_orders(self, session, service, gateway, customer, make_product):
        product = make_product(stock=50)
        for _ in range(4):
            service.create_order(session, customer, cart((product, 1)), gateway)

        assert len(service.recent_orders(session, customer.id, limit=3)) == 3


class TestAdminStatusUpdate:
    def test_walks_the_lifecycle(
        self, session, service, gateway, customer, make_product, notification_repo
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        for status in ["confirmed", "processing", "shipped"]:
            service.update_status(session, created.id, OrderStatusUpdate(status=status))
        order = service.update_status(
            session, created.id, OrderStatusUpdate(status="delivered", tracking_number="GIG-778")
        )

        assert order.status == "delivered"
        assert order.delivered_at is not None
        assert order.tracking_number == "GIG-778"
        assert notification_repo.count_for_order(session, created.id, "order_update") == 4

    @pytest.mark.parametrize(
        "path",
        [
            ["shipped"],
            ["delivered"],
            ["confirmed", "pending"],
            ["cancelled", "confirmed"],
        ],
    )
    def test_rejects_invalid_transitions(
        self, session, service, gateway, customer, make_product, path
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        *steps, last = path
        for status in steps:
            service.update_status(session, created.id, OrderStatusUpdate(status=status))

        with pytest.raises(InvalidState):
            service.update_status(session, created.id, OrderStatusUpdate(status=last))

    def test_admin_cancel_restores_stock(self, session, service, gateway, customer, make_product):
        product = make_product(stock=5)
        created = service.create_order(session, customer, cart((product, 2)), gateway).order
        service.update_status(session, created.id, OrderStatusUpdate(status="confirmed"))
        service.update_status(session, created.id, OrderStatusUpdate(status="processing"))

        order = service.update_status(session, created.id, OrderStatusUpdate(status="cancelled"))

        assert order.status == "cancelled"
        assert order.cancellation_reason == "Cancelled by admin"
        assert stock_of(session, product) == 5

    def test_same_status_updates_tracking_only(
        self, session, service, gateway, customer, make_product
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order

        order = service.update_status(
            session, created.id, OrderStatusUpdate(status="pending", tracking_number="TRK-1")
        )

        assert order.status == "pending"
        assert order.tracking_number == "TRK-1"

    def test_list_all_orders_spans_customers(
        self, session, service, gateway, customer, other_customer, make_product
    ):
        product = make_product(stock=10)
        service.create_order(session, customer, cart((product, 1)), gateway)
        service.create_order(session, other_customer, cart((product, 1)), gateway)

        page = service.list_all_orders(session)

        assert page.pagination.total_orders == 2


@pytest.fixture
def second_session(engine):
    """A second unit of work on the same database, e.g. another request."""
    with Session(engine) as other:
        yield other


class TestConcurrentChanges:
    """An order loaded before someone else changed it must not overwrite that change."""

    def test_second_cancel_from_stale_copy_is_refused(
        self, session, second_session, service, gateway, customer, make_product,
        notification_repo,
    ):
        product = make_product(stock=10)
        created = service.create_order(session, customer, cart((product, 2)), gateway).order
        assert second_session.get(Order, created.id).status == "pending"

        service.cancel_order(session, customer, created.id)

        with pytest.raises(InvalidState) as exc_info:
            service.cancel_order(second_session, customer, created.id)

        assert exc_info.value.extra["status"] == "cancelled"
        assert stock_of(session, product) == 10
        assert notification_repo.count_for_order(session, created.id, "system") == 1

    def test_admin_cancel_from_stale_copy_is_refused(
        self, session, second_session, service, gateway, customer, make_product
    ):
        product = make_product(stock=6)
        created = service.create_order(session, customer, cart((product, 3)), gateway).order
        assert second_session.get(Order, created.id).status == "pending"

        service.cancel_order(session, customer, created.id)

        with pytest.raises(InvalidState):
            service.update_status(
                second_session, created.id, OrderStatusUpdate(status="cancelled")
            )

        assert stock_of(session, product) == 6

    def test_cancel_after_payment_succeeded_keeps_payment(
        self, session, second_session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product(stock=5)
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        assert second_session.get(Order, created.id).payment_status == "pending"

        service.verify_payment(session, fixed_number, gateway)
        order = service.cancel_order(second_session, customer, created.id)

        assert order.status == "cancelled"
        assert order.payment.status == "successful"
        assert order.payment.transaction_id == "txn-1001"
        assert stock_of(session, product) == 5

    def test_verify_does_not_reopen_cancelled_order(
        self, session, second_session, service, gateway, customer, make_product, fixed_number
    ):
        product = make_product(stock=5)
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        assert second_session.get(Order, created.id).status == "pending"

        service.cancel_order(session, customer, created.id)

        with pytest.raises(InvalidState):
            service.verify_payment(second_session, fixed_number, gateway)

        order = session.get(Order, created.id, populate_existing=True)
        assert order.status == "cancelled"
        assert order.payment_status == "cancelled"

    def test_status_change_from_stale_copy_is_refused(
        self, session, second_session, service, gateway, customer, make_product,
        notification_repo,
    ):
        product = make_product()
        created = service.create_order(session, customer, cart((product, 1)), gateway).order
        service.update_status(session, created.id, OrderStatusUpdate(status="confirmed"))
        assert second_session.get(Order, created.id).status == "confirmed"

        service.update_status(session, created.id, OrderStatusUpdate(status="processing"))

        with pytest.raises(InvalidState) as exc_info:
            service.update_status(
                second_session, created.id, OrderStatusUpdate(status="processing")
            )

        assert exc_info.value.extra["status"] == "processing"
        assert notification_repo.count_for_order(session, created.id, "order_update") == 2
