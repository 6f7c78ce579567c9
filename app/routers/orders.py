# app/routers/orders.py
import uuid

from fastapi import APIRouter, Depends, status
from sqlmodel import Session

from app.core.auth import require_auth, require_user
from app.core.exceptions import PaymentGatewayUnavailable
from app.database import get_session
from app.models.user import User
from app.repositories.notification_repo import NotificationRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.schemas.order import (
    CancelOrderRequest,
    OrderCheckoutResult,
    OrderCreate,
    OrderPage,
    OrderRead,
    OrderSummaryRead,
    PaymentGatewayHealth,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.payment_gateway import PaymentGateway, get_payment_gateway

router = APIRouter(prefix="/orders", tags=["Orders"])

order_repo = OrderRepository()
product_repo = ProductRepository()
notifications = NotificationService(NotificationRepository())
service = OrderService(order_repo, product_repo, notifications)


@router.post(
    "",
    response_model=OrderCheckoutResult,
    status_code=status.HTTP_201_CREATED,
)
def create_order(
    payload: OrderCreate,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_user),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Create an order from the submitted cart and start payment.

    Always 201 once the order is saved. If the payment gateway could not
    issue a link, `payment_link` is null and `warning` explains what to do.
    """
    return service.create_order(session, current_user, payload, gateway)


@router.post("/verify-payment", response_model=VerifyPaymentResponse)
def verify_payment(
    payload: VerifyPaymentRequest | None = None,
    session: Session = Depends(get_session),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Verify a payment by reference (the order number).

    Public: called from the payment redirect/callback page.
    """
    payload = payload or VerifyPaymentRequest()
    order = service.verify_payment(
        session,
        payload.reference,
        gateway,
        order_id=payload.order_id,
    )
    return VerifyPaymentResponse(message="Payment verified successfully", order=order)


@router.get("/my-orders", response_model=OrderPage)
def list_my_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    page: int = 1,
    limit: int = 10,
    status: str | None = None,
):
    """
    List the authenticated user's orders, newest first.

    `status=all` (or omitted) means no filter.
    """
    return service.list_user_orders(session, current_user.id, page, limit, status)


@router.get("/recent", response_model=list[OrderSummaryRead])
def list_recent_orders(
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
    limit: int = 5,
):
    """
    Last few orders for the dashboard widget.
    """
    return service.recent_orders(session, current_user.id, limit)


@router.get("/payment-gateway/health", response_model=PaymentGatewayHealth)
def payment_gateway_health(gateway: PaymentGateway = Depends(get_payment_gateway)):
    """
    Check that the payment gateway is configured and reachable.
    """
    configured = getattr(gateway, "configured", True)
    if not configured:
        return PaymentGatewayHealth(
            configured=False,
            connected=False,
            message="Payment gateway secret key not configured",
        )

    try:
        connected = gateway.ping()
    except PaymentGatewayUnavailable as exc:
        return PaymentGatewayHealth(configured=True, connected=False, message=exc.message)

    return PaymentGatewayHealth(
        configured=True,
        connected=connected,
        message="Payment gateway connection successful" if connected else "Connection test failed",
    )


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: uuid.UUID,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Get a single order (owner or admin).
    """
    return service.get_order(session, current_user, order_id)


@router.put("/{order_id}/cancel", response_model=OrderRead)
def cancel_order(
    order_id: uuid.UUID,
    payload: CancelOrderRequest | None = None,
    session: Session = Depends(get_session),
    current_user: User = Depends(require_auth),
):
    """
    Cancel one of your own orders while it is pending or confirmed.
    Stock is restored for every line item.
    """
    reason = payload.reason if payload else None
    return service.cancel_order(session, current_user, order_id, reason)
