"""
Pytest configuration and shared fixtures for testing.
Sets up an in-memory test database and an HTTP test client.
"""

import os

# Configure the app before any acquisitions imports
os.environ["TEST_MODE"] = "1"  # disables rate limiting
os.environ["ENABLE_METRICS"] = "true"
os.environ["SKIP_ENV_FILE"] = "1"
os.environ["APP_ENV"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["LOG_FILE"] = ""
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret-key-minimum-32-characters"

TEST_DB_URL = os.getenv("TEST_DB_URL", "sqlite+aiosqlite://")
os.environ["DB_URL"] = TEST_DB_URL

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from acquisitions.main import app
from acquisitions.db import Base
from acquisitions import db as app_db
from acquisitions import models  # noqa: F401


def _test_engine():
    if TEST_DB_URL.startswith("sqlite"):
        # One shared connection so every session sees the same in-memory database
        return create_async_engine(
            TEST_DB_URL,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(TEST_DB_URL, poolclass=NullPool)


@pytest_asyncio.fixture(scope="function")
async def test_db_engine():
    """Fresh schema per test, swapped in for the application's session factory."""
    engine = _test_engine()
    test_session_maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    original_session = app_db.async_session
    app_db.async_session = test_session_maker

    # Tests create tables directly; deployments use Alembic
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    app_db.async_session = original_session
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def client(test_db_engine):
    """HTTP client bound to the ASGI app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        timeout=30.0,
    ) as ac:
        yield ac


@pytest.fixture
def token_service():
    return app.state.token_service


@pytest.fixture
def sample_user():
    """Sample sign-up payload."""
    return {
        "name": "Test User",
        "email": "test@example.com",
        "password": "password123",
    }


def auth_cookie(token: str) -> dict:
    """Request headers carrying ``token`` as the auth cookie."""
    return {"Cookie": f"token={token}"}


async def sign_up(client: AsyncClient, name: str, email: str, password: str = "password123", role: str | None = None):
    """Register a user through the API; returns (user_json, token).

    The client's cookie jar is cleared so each request states its caller explicitly.
    """
    payload = {"name": name, "email": email, "password": password}
    if role is not None:
        payload["role"] = role
    response = await client.post("/auth/sign-up", json=payload)
    assert response.status_code == 201, response.text
    token = response.cookies["token"]
    client.cookies.clear()
    return response.json()["user"], token
