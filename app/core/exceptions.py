# app/core/exceptions.py
"""
Domain error taxonomy for the order + payment flow.

Services raise these instead of HTTPException so the same rules can be
exercised without FastAPI. `register_exception_handlers` maps every error to
a JSON envelope:

    {"success": false, "kind": "<machine kind>", "message": "...", ...extra}
"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class ShopError(Exception):
    """Base class for errors surfaced to API callers."""

    kind = "shop_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **extra: Any):
        self.message = message
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": False,
            "kind": self.kind,
            "message": self.message,
            **self.extra,
        }


class ValidationError(ShopError):
    kind = "validation_error"


class ProductNotFound(ShopError):
    kind = "product_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class InsufficientStock(ShopError):
    kind = "insufficient_stock"

    def __init__(self, product_id, name: str | None, available: int, requested: int):
        label = name or str(product_id)
        super().__init__(
            f"Insufficient stock for {label}. Only {available} available.",
            product_id=str(product_id),
            available=available,
            requested=requested,
        )
        self.product_id = product_id
        self.available = available
        self.requested = requested


class OrderNotFound(ShopError):
    kind = "order_not_found"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, message: str = "Order not found", **extra: Any):
        super().__init__(message, **extra)


class Forbidden(ShopError):
    kind = "forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidState(ShopError):
    kind = "invalid_state"


class PaymentGatewayUnavailable(ShopError):
    """Transport, configuration or protocol failure talking to the gateway."""

    kind = "payment_gateway_unavailable"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class PaymentDeclined(ShopError):
    """The gateway answered, and the answer was "no"."""

    kind = "payment_declined"

    def __init__(self, message: str, raw_status: str | None = None):
        super().__init__(message, raw_status=raw_status)
        self.raw_status = raw_status


class PaymentPending(ShopError):
    """
    The gateway has no final answer yet (abandoned checkout page, bank
    transfer still processing). The payment stays pending and can be
    verified again later.
    """

    kind = "payment_pending"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, message: str, raw_status: str | None = None):
        super().__init__(message, raw_status=raw_status)
        self.raw_status = raw_status


async def shop_error_handler(request: Request, exc: ShopError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.kind, request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Render body/query validation failures in the same envelope as ShopError,
    with field-level detail.
    """
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part != "body"]
        errors.append({"field": ".".join(loc), "message": err.get("msg", "")})

    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=jsonable_encoder(
            {
                "success": False,
                "kind": ValidationError.kind,
                "message": "Validation error. Please check your input.",
                "errors": errors,
            }
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ShopError, shop_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
