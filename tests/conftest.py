"""
Shared fixtures: a throwaway SQLite database per test, an HTTP client bound to
the app, a Razorpay gateway backed by httpx.MockTransport, and seeded users
and programs.
"""
import itertools
import json
import os
import tempfile

# Settings are cached on first import, so the environment must be set first
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("EMAIL_PROVIDER", "log")
os.environ.setdefault("SCHEDULER_AUTOSTART", "false")
os.environ.setdefault("CERTIFICATES_DIR", tempfile.mkdtemp(prefix="certificates-"))

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from donation_portal.core.config import get_settings
from donation_portal.database.database import get_db, init_db
from donation_portal.main import app, wire_services
from donation_portal.models import Program, ProgramStatus, UserRole
from donation_portal.schemas.auth import RegisterRequest
from donation_portal.services.auth import AuthService
from donation_portal.services.email_sender import EmailSender
from donation_portal.services.payment_gateway import RazorpayGateway, compute_signature

TEST_KEY_ID = "rzp_test_key"
TEST_KEY_SECRET = "rzp_test_secret"


def sign(order_id: str, payment_id: str) -> str:
    """Signature the checkout widget would send for this order and payment"""
    return compute_signature(order_id, payment_id, TEST_KEY_SECRET)


def verify_payload(order_id: str, payment_id: str, signature: str = None) -> dict:
    return {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature or sign(order_id, payment_id),
    }


def auth_headers(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


# ============================================================================
# FIXTURES - INFRASTRUCTURE
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path):
    """File-backed SQLite so concurrent sessions see each other's commits"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        echo=False,
    )
    await init_db(engine)

    factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    yield factory

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def gateway_requests():
    """Order creation requests received by the fake gateway"""
    return []


@pytest.fixture
def gateway(gateway_requests):
    counter = itertools.count(1)

    def handler(request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content)
        gateway_requests.append({"url": str(request.url), "payload": payload, "headers": request.headers})
        return httpx.Response(
            200,
            json={
                "id": f"order_test_{next(counter)}",
                "entity": "order",
                "amount": payload["amount"],
                "currency": payload["currency"],
                "receipt": payload["receipt"],
                "status": "created",
            },
        )

    return RazorpayGateway(
        key_id=TEST_KEY_ID,
        key_secret=TEST_KEY_SECRET,
        api_url="https://api.razorpay.test/v1",
        mock=False,
        transport=httpx.MockTransport(handler),
    )


@pytest_asyncio.fixture
async def client(session_factory, gateway):
    """HTTP client against the app with test services wired in"""
    settings = get_settings()
    wire_services(app, session_factory, settings, gateway=gateway, email_sender=EmailSender(provider="log"))
    app.state.certificates.ensure_directory()

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await app.state.dispatcher.drain()
    app.dependency_overrides.clear()


# ============================================================================
# FIXTURES - SEED DATA
# ============================================================================

@pytest_asyncio.fixture
async def donor(client):
    """Registered donor: returns the auth response body"""
    response = await client.post(
        "/api/auth/register",
        json={
            "name": "Asha Rao",
            "email": "asha@example.com",
            "phone": "9876543210",
            "password": "secret123",
        },
    )
    assert response.status_code == 201
    return response.json()


@pytest_asyncio.fixture
async def donor_headers(donor):
    return auth_headers(donor["token"])


@pytest_asyncio.fixture
async def admin_headers(db_session):
    admin = await AuthService.create_user(
        db_session,
        RegisterRequest(
            name="Site Admin",
            email="admin@example.com",
            phone="9000000000",
            password="adminpass",
        ),
        role=UserRole.ADMIN,
    )
    return auth_headers(AuthService.issue_token(admin).token)


@pytest_asyncio.fixture
async def program(db_session):
    record = Program(
        program_name="Clean Water",
        description="Wells and filters for rural schools",
        target_amount=100000,
        status=ProgramStatus.ACTIVE,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record


@pytest_asyncio.fixture
async def second_program(db_session):
    record = Program(
        program_name="School Meals",
        description="Midday meals for primary schools",
        target_amount=50000,
        status=ProgramStatus.ACTIVE,
    )
    db_session.add(record)
    await db_session.commit()
    await db_session.refresh(record)
    return record
