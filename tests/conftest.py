"""
Shared test fixtures for the Ledgerly test suite.

Database fixtures use an in-memory SQLite database (aiosqlite) with a
StaticPool so every session in a test sees the same schema and rows.
"""

import hashlib
import hmac
import json
import time
import uuid
from datetime import UTC, datetime, timedelta

import httpx
import pytest
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ledgerly.config import Settings, get_settings
from ledgerly.db.database import get_db
from ledgerly.db.models import Base
from ledgerly.middleware.rate_limiter import InMemoryRateLimiter

TEST_JWT_SECRET = "test-jwt-secret-for-unit-tests-only-64-chars-long-padding-here"
TEST_WEBHOOK_SECRET = "whsec_test_fake"


def make_settings(**overrides) -> Settings:
    """Settings isolated from .env and with Stripe fully configured."""
    values = {
        "auth_jwt_secret": TEST_JWT_SECRET,
        "stripe_secret_key": "sk_test_fake",
        "stripe_webhook_secret": TEST_WEBHOOK_SECRET,
        "stripe_price_id_pro_monthly": "price_pro_monthly",
        "stripe_price_id_pro_yearly": "price_pro_yearly",
        "stripe_price_id_enterprise_monthly": "price_ent_monthly",
        "stripe_price_id_enterprise_yearly": "price_ent_yearly",
        "app_url": "https://app.ledgerly.test",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_token(
    user_id: uuid.UUID | str,
    email: str = "merchant@example.com",
    secret: str = TEST_JWT_SECRET,
    audience: str = "authenticated",
    expired: bool = False,
) -> str:
    """Mint an access token shaped like the auth provider's."""
    now = datetime.now(UTC)
    exp = now - timedelta(hours=1) if expired else now + timedelta(hours=1)
    payload = {
        "sub": str(user_id),
        "email": email,
        "aud": audience,
        "role": "authenticated",
        "iat": now,
        "exp": exp,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def sign_payload(payload: str, secret: str = TEST_WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    ts = int(time.time()) if timestamp is None else timestamp
    signature = hmac.new(
        secret.encode("utf-8"),
        f"{ts}.{payload}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return f"t={ts},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str | None = None) -> dict:
    return {
        "id": event_id or f"evt_{uuid.uuid4().hex[:16]}",
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


def subscription_object(
    user_id: uuid.UUID | None,
    status: str = "active",
    plan: str | None = "pro",
    price_id: str = "price_pro_monthly",
    period_start: int = 1_760_000_000,
    period_end: int = 1_762_592_000,
    cancel_at_period_end: bool = False,
    subscription_id: str = "sub_123",
    customer_id: str = "cus_123",
) -> dict:
    metadata = {}
    if user_id is not None:
        metadata["user_id"] = str(user_id)
    if plan is not None:
        metadata["plan"] = plan
    return {
        "id": subscription_id,
        "object": "subscription",
        "customer": customer_id,
        "status": status,
        "metadata": metadata,
        "current_period_start": period_start,
        "current_period_end": period_end,
        "cancel_at_period_end": cancel_at_period_end,
        "items": {"data": [{"id": "si_1", "price": {"id": price_id}}]},
    }


# ─── Database Fixtures ───────────────────────────────────────


@pytest.fixture
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


@pytest.fixture
def other_user_id() -> uuid.UUID:
    return uuid.uuid4()


# ─── App Fixtures ────────────────────────────────────────────


@pytest.fixture
def app(session_factory, settings):
    """The real application wired to the test database and settings."""
    from ledgerly.main import create_app

    application = create_app()
    application.state.rate_limiter = InMemoryRateLimiter()

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_settings] = lambda: settings
    return application


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def auth_headers(user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def other_auth_headers(other_user_id) -> dict:
    return {"Authorization": f"Bearer {make_token(other_user_id, email='other@example.com')}"}


def encode_event(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"))
