"""Shared fixtures: a throwaway SQLite store, principals, and API clients.

Settings are read at import time, so the environment is prepared before any
`payportal` module is imported.
"""

import os
import tempfile
from datetime import timedelta
from decimal import Decimal

_DB_DIR = tempfile.mkdtemp(prefix="payportal-tests-")
os.environ["DATABASE_DSN"] = f"sqlite:///{os.path.join(_DB_DIR, 'portal.db')}"
os.environ["JWT_SECRET"] = "test-secret-key-with-enough-length-for-hs256"
os.environ["TRACING_ENABLED"] = "false"
os.environ["SERVICE_NAME"] = "payportal-tests"
os.environ["RATE_LIMIT_BACKEND"] = "memory"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from payportal.common.auth import CUSTOMER, EMPLOYEE, Principal, issue_token  # noqa: E402
from payportal.common.config import settings  # noqa: E402
from payportal.common.db import Base, SessionLocal, engine  # noqa: E402
from payportal.common.rate_limit import InMemoryRateLimitStore, build_rate_limiters  # noqa: E402
from payportal.services.payments.service import PaymentService  # noqa: E402
from payportal.services.review.service import ReviewService  # noqa: E402
from payportal.store.models import Payment, utcnow  # noqa: E402

VALID_PAYMENT = {
    "recipientName": "Alice Roberts",
    "recipientEmail": "alice@example.com",
    "recipientIBAN": "GB29 NWBK 6016 1331 9268 19",
    "recipientSWIFT": "nwbkgb2l",
    "recipientAddress": "1 High Street",
    "recipientCity": "London",
    "recipientCountry": "GB",
    "amount": "250.50",
    "currency": "gbp",
    "reference": "INV-1001",
    "purpose": "Consulting services",
}


@pytest.fixture(autouse=True)
def store():
    """Fresh schema for every test."""

    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)


@pytest.fixture
def customer() -> Principal:
    return Principal(user_id="cust-1", email="cust1@example.com", role=CUSTOMER)


@pytest.fixture
def other_customer() -> Principal:
    return Principal(user_id="cust-2", email="cust2@example.com", role=CUSTOMER)


@pytest.fixture
def employee() -> Principal:
    return Principal(user_id="emp-1", email="reviewer@bank.example", role=EMPLOYEE)


@pytest.fixture
def payment_service() -> PaymentService:
    return PaymentService(SessionLocal, settings.max_payment_amount)


@pytest.fixture
def review_service() -> ReviewService:
    return ReviewService(SessionLocal)


@pytest.fixture
def make_payment():
    """Insert a payment row directly, bypassing the services."""

    def factory(**overrides) -> str:
        now = utcnow()
        fields = {
            "user_id": "cust-1",
            "recipient_name": "Alice Roberts",
            "recipient_email": "alice@example.com",
            "recipient_iban": "GB29NWBK60161331926819",
            "recipient_swift": "NWBKGB2L",
            "recipient_address": "1 High Street",
            "recipient_city": "London",
            "recipient_country": "GB",
            "amount": Decimal("100.00"),
            "currency": "GBP",
            "reference": "INV-1001",
            "purpose": "Consulting services",
            "status": "pending",
            "created_at": now,
            "updated_at": now,
            "escalated": False,
        }
        fields.update(overrides)
        with SessionLocal() as db:
            payment = Payment(**fields)
            db.add(payment)
            db.commit()
            return payment.id

    return factory


@pytest.fixture
def hours_ago():
    def at(hours: float):
        return utcnow() - timedelta(hours=hours)

    return at


@pytest.fixture
def bearer():
    """Build an Authorization header for a principal."""

    def headers(principal: Principal) -> dict[str, str]:
        token = issue_token(principal.user_id, principal.email, principal.role)
        return {"Authorization": f"Bearer {token}"}

    return headers


@pytest.fixture
def payments_client():
    from payportal.services.payments.main import app

    app.state.rate_limiters = build_rate_limiters(settings, InMemoryRateLimitStore())
    return TestClient(app)


@pytest.fixture
def review_client():
    from payportal.services.review.main import app

    app.state.rate_limiters = build_rate_limiters(settings, InMemoryRateLimitStore())
    return TestClient(app)


@pytest.fixture
def payment_fields() -> dict:
    """A valid customer submission in wire (camelCase) form."""

    return dict(VALID_PAYMENT)
