"""
Test fixtures for the e-GP identity API test suite.

This module provides shared fixtures used across all test files:

  - db_engine / session_factory: Fresh in-memory SQLite database per test
  - outbox: Recording email dispatcher (captures messages instead of sending)
  - client: Async HTTP test client with the test DB and outbox injected
  - registered_supplier / registered_buyer: Users created through the real
    registration endpoint, with the verification token read from the outbox
  - admin_token / auditor_token: Session JWTs for the oversight roles

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database.
  - We override FastAPI's get_db and get_notifier dependencies, so the
    application code runs exactly as it does in production.
  - One-time tokens never appear in responses. Tests read them from the
    emails the outbox captured, the same way a user would.
  - The admin comes from the reference data seed; the auditor is a
    registered buyer whose role is changed directly in the database, which
    is how operators provision oversight accounts.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("MAIL_BACKEND", "console")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

import egp_api.models  # noqa: F401
from egp_api.database import Base, get_db
from egp_api.dependencies import get_notifier
from egp_api.main import app
from egp_api.models.user import User, UserRole
from egp_api.services.seed_service import ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD, seed_reference_data
from helpers import RecordingDispatcher, buyer_payload, sign_in, supplier_payload


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    """Session factory bound to the test engine, for direct DB checks."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
def outbox():
    return RecordingDispatcher()


@pytest_asyncio.fixture
async def client(session_factory, outbox):
    """
    Async HTTP test client with the test database and outbox injected.

    All requests hit the in-memory test database, and every email lands
    in `outbox` instead of being sent.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: outbox

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def registered_supplier(client, outbox):
    """
    A supplier registered through the real endpoint (not yet verified).

    Returns the registration payload plus the response body and the
    verification token from the outbox.
    """
    payload = supplier_payload()
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, f"Registration failed: {response.text}"
    return {
        **payload,
        "user": response.json()["user"],
        "token": outbox.verification_token(payload["email"]),
    }


@pytest_asyncio.fixture
async def registered_buyer(client, outbox):
    """An agency buyer registered through the real endpoint (not yet verified)."""
    payload = buyer_payload()
    response = await client.post("/auth/register", json=payload)
    assert response.status_code == 201, f"Registration failed: {response.text}"
    return {
        **payload,
        "user": response.json()["user"],
        "token": outbox.verification_token(payload["email"]),
    }


@pytest_asyncio.fixture
async def verified_supplier(client, registered_supplier):
    response = await client.post(
        "/auth/verify-email", json={"token": registered_supplier["token"]}
    )
    assert response.status_code == 200, f"Verification failed: {response.text}"
    return registered_supplier


@pytest_asyncio.fixture
async def admin_token(client, session_factory):
    """Session JWT for the seeded NPC administrator."""
    async with session_factory() as session:
        await seed_reference_data(session)
    return await sign_in(client, ADMIN_EMAIL, DEFAULT_ADMIN_PASSWORD)


@pytest_asyncio.fixture
async def auditor_token(client, session_factory, registered_buyer):
    """
    Session JWT for an AUDITOR.

    Registers a buyer normally, then changes the role directly in the
    database, the way an operator provisions oversight accounts.
    """
    async with session_factory() as session:
        await session.execute(
            update(User)
            .where(User.email == registered_buyer["email"])
            .values(role=UserRole.AUDITOR)
        )
        await session.commit()
    return await sign_in(client, registered_buyer["email"], registered_buyer["password"])
