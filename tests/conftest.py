"""Pytest configuration and shared fixtures for API tests."""

import os
import tempfile

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import delete

# Set test DB before app imports so config/engine use it
_TEST_DB_DIR = tempfile.mkdtemp(prefix="authcore-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DB_DIR}/authcore.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-with-at-least-32-characters")
os.environ["APP_ENV"] = "test"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SMTP_HOST"] = ""

from authcore.core.auth import create_access_token, hash_password
from authcore.db.base import Base
from authcore.db.session import async_session_maker, engine, init_db
from authcore.main import app
from authcore.models.user import User

pytest_plugins = ["pytest_asyncio"]

TEST_PASSWORD = "Str0ng!Pass"
CHROME_ON_WINDOWS = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SAFARI_ON_IPHONE = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1"
)


@pytest_asyncio.fixture(scope="session")
async def ensure_db():
    """Create tables once per test session (no scheduler)."""
    await init_db()
    yield
    await engine.dispose()


async def _wipe_all():
    """Delete rows from all tables in reverse dependency order so tests start clean."""
    async with engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            await conn.execute(delete(table))


@pytest_asyncio.fixture
async def client(ensure_db):
    """Yield AsyncClient. No session override; use clean_db + test_user for isolated state."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers={"User-Agent": CHROME_ON_WINDOWS},
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def clean_db(ensure_db):
    """Wipe all tables so the next test has a clean DB."""
    await _wipe_all()
    yield


async def create_user(email: str = "test@test.com", password: str = TEST_PASSWORD, **fields) -> User:
    """Insert a committed user directly through the ORM."""
    async with async_session_maker() as session:
        user = User(
            email=email,
            first_name=fields.pop("first_name", "Test"),
            last_name=fields.pop("last_name", "User"),
            password_hash=hash_password(password),
            **fields,
        )
        session.add(user)
        await session.commit()
        await session.refresh(user)
        return user


@pytest_asyncio.fixture
async def test_user(clean_db, client):
    """Create a user via DB (committed) and return (user_id, email, access_token)."""
    user = await create_user()
    token = create_access_token(user.id, user.email)
    return user.id, user.email, token


@pytest_asyncio.fixture
def auth_headers(test_user):
    """Return dict of Authorization header for test_user."""
    _, __, token = test_user
    return {"Authorization": f"Bearer {token}"}


async def register(client: AsyncClient, email: str = "new.user@example.com", password: str = TEST_PASSWORD, **extra):
    """Register through the API and return the response."""
    return await client.post(
        "/api/v1/auth/register",
        json={"email": email, "firstName": "New", "lastName": "User", "password": password},
        **extra,
    )


async def login(client: AsyncClient, email: str, password: str = TEST_PASSWORD, **extra):
    return await client.post("/api/v1/auth/login", json={"email": email, "password": password}, **extra)


def bearer(access_token: str) -> dict:
    return {"Authorization": f"Bearer {access_token}"}
