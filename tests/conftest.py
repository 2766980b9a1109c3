"""
Shared fixtures: in-memory SQLite, a TestClient running the app lifespan,
bearer tokens for learners and the seeded admin, and a mock EmailJS endpoint.
"""

import json
import os

os.environ.update(
    {
        "DB_CONNECTION": "sqlite",
        "DB_DATABASE": ":memory:",
        "DEBUG": "false",
        "RATE_LIMIT_ENABLED": "false",
        "JWT_SECRET": "test-secret",
        "ENABLE_COUPONS": "true",
        "ENABLE_PROGRESS_TRACKING": "true",
        "PAYPAL_CLIENT_ID": "test-client",
        "EMAILJS_SERVICE_ID": "service_test",
        "EMAILJS_TEMPLATE_ID": "template_test",
        "EMAILJS_PUBLIC_KEY": "public_test",
        "ADMIN_EMAILS": "admin@example.com",
    }
)

from decimal import Decimal  # noqa: E402

import httpx  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.core.config import get_settings, settings  # noqa: E402
from app.core.database import Base, SessionLocal, engine  # noqa: E402
from app.core.dependencies import get_email_transport  # noqa: E402
from app.core.security import jwt_manager  # noqa: E402
from app.models.user import User  # noqa: E402
from app.schemas.coupon import CouponCreate  # noqa: E402
from app.schemas.course import CourseCreate  # noqa: E402
from app.services.coupon import CouponService  # noqa: E402
from app.services.course import CourseService  # noqa: E402
from main import app  # noqa: E402

ADMIN_EMAIL = "admin@example.com"


def money(value) -> Decimal:
    """API money fields arrive as strings or numbers; compare as Decimal."""
    return Decimal(str(value))


@pytest.fixture
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def outbox():
    """Payloads posted to the mock EmailJS endpoint."""
    return []


@pytest.fixture
def email_ok(outbox):
    def handler(request: httpx.Request) -> httpx.Response:
        outbox.append(json.loads(request.content))
        return httpx.Response(200, text="OK")

    return httpx.MockTransport(handler)


@pytest.fixture
def client(database, email_ok):
    app.dependency_overrides[get_email_transport] = lambda: email_ok
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def failing_email(client):
    """Make EmailJS answer 500 for the rest of the test."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="Service unavailable")

    transport = httpx.MockTransport(handler)
    app.dependency_overrides[get_email_transport] = lambda: transport
    return transport


@pytest.fixture
def override_settings():
    def apply(**changes):
        patched = settings.model_copy(update=changes)
        app.dependency_overrides[get_settings] = lambda: patched
        return patched

    return apply


def bearer(user_id: str, email: str = None, name: str = None) -> dict:
    token = jwt_manager.create_access_token(user_id, email=email, name=name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def learner_headers():
    return bearer("user-ada", email="ada@example.com", name="Ada Lovelace")


@pytest.fixture
def other_headers():
    return bearer("user-grace", email="grace@example.com", name="Grace Hopper")


@pytest.fixture
def admin_headers():
    return bearer("user-admin", email=ADMIN_EMAIL, name="Site Admin")


@pytest.fixture
def make_user(db):
    def create(user_id: str, email: str = None, name: str = None) -> User:
        user = User(id=user_id, email=email, display_name=name)
        db.add(user)
        db.commit()
        return user

    return create


@pytest.fixture
def make_course(db):
    def create(course_id: str = "agentic-ai-bootcamp", price: str = "100.00", batches=None, **fields):
        if batches is None:
            batches = [{"batch_number": 1, "status": "active", "max_capacity": 30}]
        course_in = CourseCreate(
            id=course_id,
            title=fields.pop("title", "Agentic AI Bootcamp"),
            category=fields.pop("category", "AI"),
            price=Decimal(price),
            batches=batches,
            **fields,
        )
        return CourseService(db).create_course(course_in)

    return create


@pytest.fixture
def make_coupon(db):
    def create(**fields):
        fields.setdefault("discount_type", "percentage")
        fields.setdefault("discount_value", Decimal("50"))
        return CouponService(db, settings).create_coupon(CouponCreate(**fields))

    return create


@pytest.fixture
def paypal_payment():
    def build(amount: str = "100.00", order_id: str = "ORDER-1", payment_id: str = "CAPTURE-1", **fields):
        payment = {
            "order_id": order_id,
            "payment_id": payment_id,
            "payer_id": "PAYER-1",
            "payer_email": "ada.payer@example.com",
            "payer_name": "Ada Lovelace",
            "amount": amount,
            "currency": "USD",
            "transaction_status": "COMPLETED",
            "funding_source": "paypal",
        }
        payment.update(fields)
        return payment

    return build
