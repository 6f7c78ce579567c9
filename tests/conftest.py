"""Pytest fixtures for the Hijab World API tests."""

import os

# Settings are read at import time by app.database / app.core.auth
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-secret")

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from app.core.auth import get_current_user
from app.core.config import Settings
from app.database import build_engine, get_session
from app.main import app
from app.models.product import Product
from app.models.user import User
from app.repositories.notification_repo import NotificationRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.product_repo import ProductRepository
from app.services.notification_service import NotificationService
from app.services.order_service import OrderService
from app.services.payment_gateway import (
    PaymentInitResult,
    PaymentVerification,
    get_payment_gateway,
)


class FakeGateway:
    """
    Scriptable stand-in for the Paystack adapter.

    `init_error` is raised by initialize(); `verify_results` is consumed in
    order by verify() and may hold exceptions to raise.
    """

    configured = True

    def __init__(self):
        self.init_calls = []
        self.verify_calls = []
        self.init_error = None
        self.verify_results = []
        self.ping_result = True

    def initialize(self, request):
        self.init_calls.append(request)
        if self.init_error is not None:
            raise self.init_error
        return PaymentInitResult(
            redirect_url=f"https://checkout.paystack.test/{request.reference}",
            gateway_reference=request.reference,
        )

    def verify(self, reference):
        self.verify_calls.append(reference)
        if self.verify_results:
            outcome = self.verify_results.pop(0)
        else:
            outcome = success(reference)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def ping(self):
        return self.ping_result


def success(reference, transaction_id="txn-1001"):
    return PaymentVerification(
        succeeded=True,
        external_transaction_id=transaction_id,
        raw_status="success",
        gateway_reference=reference,
    )


def failure(reference, raw_status="failed"):
    return PaymentVerification(
        succeeded=False,
        external_transaction_id="",
        raw_status=raw_status,
        gateway_reference=reference,
    )


def pending(reference, raw_status="ongoing"):
    return PaymentVerification(
        succeeded=False,
        external_transaction_id="",
        raw_status=raw_status,
        gateway_reference=reference,
        pending=True,
    )


def make_settings(**overrides) -> Settings:
    values = {
        "DATABASE_URL": "sqlite://",
        "SUPABASE_JWT_SECRET": "test-secret",
        "PAYMENT_VERIFY_RETRIES": 2,
    }
    values.update(overrides)
    return Settings(**values)


def checkout_payload(*lines, **address_overrides):
    """lines: (product, quantity) pairs."""
    address = {
        "first_name": "Aisha",
        "last_name": "Bello",
        "email": "aisha@gmail.com",
        "phone": "+2348012345678",
        "address": "12 Allen Avenue",
        "city": "Ikeja",
        "state": "Lagos",
        "zip_code": "100001",
    }
    address.update(address_overrides)
    return {
        "items": [
            {"product_id": str(product.id), "quantity": quantity}
            for product, quantity in lines
        ],
        "shipping_address": address,
    }


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def customer(session):
    user = User(id=uuid.uuid4(), email="aisha@gmail.com", first_name="Aisha", last_name="Bello")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def other_customer(session):
    user = User(id=uuid.uuid4(), email="zainab@gmail.com", first_name="Zainab")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def admin(session):
    user = User(id=uuid.uuid4(), email="admin@hijabworld.com", first_name="Admin", role="admin")
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


@pytest.fixture
def make_product(session):
    def _make(name="Chiffon Hijab", price=5000.0, stock=10, **kwargs):
        product = Product(
            name=name,
            slug=kwargs.pop("slug", f"{name.lower().replace(' ', '-')}-{uuid.uuid4().hex[:6]}"),
            price=price,
            stock=stock,
            category=kwargs.pop("category", "hijab"),
            **kwargs,
        )
        session.add(product)
        session.commit()
        session.refresh(product)
        return product

    return _make


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def order_repo():
    return OrderRepository()


@pytest.fixture
def notification_repo():
    return NotificationRepository()


@pytest.fixture
def service_factory(order_repo, notification_repo):
    def _factory(**settings_overrides):
        return OrderService(
            order_repo,
            ProductRepository(),
            NotificationService(notification_repo),
            settings=make_settings(**settings_overrides),
        )

    return _factory


@pytest.fixture
def service(service_factory):
    """Order service with no tax so totals are easy to read."""
    return service_factory(TAX_RATE=0.0)


@pytest.fixture
def client(session, gateway):
    """
    TestClient bound to the test session and fake gateway.

    Use `client.login(user)` to authenticate subsequent requests;
    `client.logout()` goes back to guest mode.
    """

    def _get_session():
        yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_current_user] = lambda: None

    test_client = TestClient(app)

    def login(user):
        app.dependency_overrides[get_current_user] = lambda: user

    def logout():
        app.dependency_overrides[get_current_user] = lambda: None

    test_client.login = login
    test_client.logout = logout

    yield test_client

    app.dependency_overrides.clear()
