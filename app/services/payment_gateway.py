# app/services/payment_gateway.py
"""
Payment gateway adapter.

The order service only talks to the narrow `PaymentGateway` interface:

    initialize(PaymentInitRequest) -> PaymentInitResult
    verify(reference)              -> PaymentVerification

Every transport, configuration or protocol problem is reported as
PaymentGatewayUnavailable. A gateway that answers properly but says "no"
is a business outcome: PaymentDeclined on initialize, a
PaymentVerification(succeeded=False) on verify. A transaction that has not
settled yet comes back with pending=True.
"""

import logging
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Protocol
from urllib.parse import quote

import requests

from app.core.config import get_settings
from app.core.exceptions import PaymentDeclined, PaymentGatewayUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentInitRequest:
    amount_minor_units: int
    currency: str
    buyer_email: str
    reference: str
    callback_url: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PaymentInitResult:
    redirect_url: str
    gateway_reference: str


@dataclass(frozen=True)
class PaymentVerification:
    succeeded: bool
    external_transaction_id: str
    raw_status: str
    gateway_reference: str = ""
    amount_minor_units: int | None = None
    # No final outcome yet; the caller must not record a failure.
    pending: bool = False


class PaymentGateway(Protocol):
    def initialize(self, request: PaymentInitRequest) -> PaymentInitResult: ...

    def verify(self, reference: str) -> PaymentVerification: ...

    def ping(self) -> bool: ...


def to_minor_units(amount: float) -> int:
    """Naira -> kobo (or any 1/100 currency)."""
    return int(round(amount * 100))


class PaystackGateway:
    """
    Paystack REST API client.

    https://paystack.com/docs/api/transaction/
    """

    # Anything else (ongoing, pending, processing, queued, abandoned) can
    # still turn into a success.
    FINAL_STATUSES = frozenset({"success", "failed", "reversed"})

    def __init__(
        self,
        secret_key: str | None,
        base_url: str = "https://api.paystack.co",
        timeout: float = 15.0,
        http: requests.Session | None = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.http = http or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.secret_key)

    @property
    def mode(self) -> str:
        if not self.secret_key:
            return "not configured"
        if self.secret_key.startswith("sk_live_"):
            return "live"
        if self.secret_key.startswith("sk_test_"):
            return "test"
        return "unknown"

    def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if not self.secret_key:
            raise PaymentGatewayUnavailable(
                "Paystack payment gateway is not configured. Missing PAYSTACK_SECRET_KEY."
            )

        url = f"{self.base_url}{path}"
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.http.request(
                method,
                url,
                headers=headers,
                timeout=self.timeout,
                **kwargs,
            )
        except requests.Timeout as exc:
            raise PaymentGatewayUnavailable(
                f"Payment gateway timed out after {self.timeout}s"
            ) from exc
        except requests.RequestException as exc:
            raise PaymentGatewayUnavailable(f"Payment gateway unreachable: {exc}") from exc

        if response.status_code >= 500 or response.status_code in (401, 403):
            logger.error("Paystack %s %s -> HTTP %s", method, path, response.status_code)
            raise PaymentGatewayUnavailable(
                f"Payment gateway returned HTTP {response.status_code}"
            )

        try:
            body = response.json()
        except ValueError as exc:
            raise PaymentGatewayUnavailable("Invalid response from payment gateway") from exc

        if not isinstance(body, dict) or "status" not in body:
            raise PaymentGatewayUnavailable("Invalid response from payment gateway")

        return body

    def initialize(self, request: PaymentInitRequest) -> PaymentInitResult:
        payload = {
            "amount": request.amount_minor_units,
            "email": request.buyer_email,
            "reference": request.reference,
            "currency": request.currency,
            "callback_url": request.callback_url,
            "metadata": request.metadata,
        }
        logger.info(
            "Initializing Paystack transaction %s (%s %s)",
            request.reference,
            request.amount_minor_units,
            request.currency,
        )
        body = self._request("POST", "/transaction/initialize", json=payload)

        if not body.get("status"):
            raise PaymentDeclined(
                body.get("message") or "Payment could not be initialized",
                raw_status="declined",
            )

        data = body.get("data") or {}
        redirect_url = data.get("authorization_url")
        if not redirect_url:
            raise PaymentGatewayUnavailable(
                "Invalid response from payment gateway. Please try again."
            )

        return PaymentInitResult(
            redirect_url=redirect_url,
            gateway_reference=data.get("reference") or request.reference,
        )

    def verify(self, reference: str) -> PaymentVerification:
        body = self._request("GET", f"/transaction/verify/{quote(reference, safe='')}")

        data = body.get("data") or {}
        if not body.get("status") or not isinstance(data, dict):
            # e.g. "Transaction reference not found": the shopper may not
            # have reached the checkout page yet.
            return PaymentVerification(
                succeeded=False,
                external_transaction_id="",
                raw_status=str(body.get("message") or "unknown"),
                gateway_reference=reference,
                pending=True,
            )

        raw_status = str(data.get("status") or "unknown")
        amount = data.get("amount")
        return PaymentVerification(
            succeeded=raw_status == "success",
            external_transaction_id=str(data.get("id") or ""),
            raw_status=raw_status,
            gateway_reference=str(data.get("reference") or reference),
            amount_minor_units=int(amount) if amount is not None else None,
            pending=raw_status not in self.FINAL_STATUSES,
        )

    def ping(self) -> bool:
        body = self._request("GET", "/transaction", params={"perPage": 1})
        return bool(body.get("status"))


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """
    FastAPI dependency returning the configured gateway.

    Tests override this with a fake via app.dependency_overrides.
    """
    settings = get_settings()
    gateway = PaystackGateway(
        secret_key=settings.PAYSTACK_SECRET_KEY,
        base_url=settings.PAYSTACK_BASE_URL,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )
    logger.info("Paystack configured. Mode: %s", gateway.mode)
    return gateway
