"""
Shared test fixtures.

Each test gets its own file-backed SQLite database (aiosqlite), the
app's `get_db` dependency and session factory pointed at it, and an
httpx `AsyncClient` talking to the app in-process.
"""

from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from metrics_backend.core import database
from metrics_backend.core.config import settings
from metrics_backend.core.database import get_db
from metrics_backend.core.security import hash_password
from metrics_backend.main import app
from metrics_backend.models import Base, User
from metrics_backend.services.username_email_set_service import add_username_email

DEFAULT_PASSWORD = "Passw0rd!"


# ============================================================================
# Test Environment Setup
# ============================================================================

@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    """Override settings for testing"""
    monkeypatch.setattr(settings, "BCRYPT_ROUNDS", 4)
    monkeypatch.setattr(settings, "SECRET_KEY", "test-secret-key-for-testing-only")
    return settings


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def session_factory(tmp_path, monkeypatch) -> AsyncGenerator[async_sessionmaker, None]:
    """Create a fresh database for each test function"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, expire_on_commit=False)
    monkeypatch.setattr(database, "SessionLocal", factory)
    yield factory
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Application Client Fixtures
# ============================================================================

@pytest_asyncio.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


# ============================================================================
# Helpers
# ============================================================================

@pytest.fixture
def create_user(session_factory):
    """Insert a user directly and return its id as a string."""

    async def _create(username: str, roles: list[str] | None = None, password: str = DEFAULT_PASSWORD) -> str:
        async with session_factory() as session:
            user = User(
                username=username,
                email=f"{username}@example.com",
                password=hash_password(password),
                roles=roles or ["Employee"],
            )
            session.add(user)
            await add_username_email(user.username, user.email, session)
            await session.commit()
            return str(user.id)

    return _create


@pytest.fixture
def login(client):
    """Log in and return the response envelope."""

    async def _login(username: str, password: str = DEFAULT_PASSWORD) -> dict:
        response = await client.post(
            "/auth/login",
            json={"schema": {"username": username, "password": password}},
        )
        assert response.status_code == 200
        return response.json()

    return _login


class TokenHolder:
    """Carries the rotating access token across requests."""

    def __init__(self, client: AsyncClient, token: str):
        self.client = client
        self.token = token

    async def request(self, method: str, url: str, **kwargs) -> dict:
        headers = {"Authorization": f"Bearer {self.token}"}
        response = await self.client.request(method, url, headers=headers, **kwargs)
        assert response.status_code == 200
        body = response.json()
        if body["accessToken"]:
            self.token = body["accessToken"]
        return body


@pytest.fixture
def signed_in(create_user, login, client):
    """Create a user, log in, and return a `TokenHolder` for it."""

    async def _signed_in(username: str, roles: list[str] | None = None) -> TokenHolder:
        await create_user(username, roles)
        body = await login(username)
        assert body["kind"] == "success"
        return TokenHolder(client, body["accessToken"])

    return _signed_in
