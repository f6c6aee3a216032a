"""Pytest fixtures for testing.

Each test gets its own SQLite database file. Fixtures commit rather than
flush: usage records and webhook outcomes are written through separate
sessions, which only see committed rows.
"""

import asyncio
import os
from collections.abc import AsyncGenerator
from datetime import datetime
from uuid import UUID

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./gateway-test.db")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")

from gateway.api.deps import get_webhook_transport
from gateway.core.database import get_db, get_session_factory
from gateway.core.security import create_access_token, digest_key, display_prefix, generate_api_key
from gateway.main import app
from gateway.models.api_key import ApiKey
from gateway.models.base import Base
from gateway.models.enums import UserRole
from gateway.models.organization import Organization
from gateway.models.user import User
from gateway.models.webhook_endpoint import WebhookEndpoint

WEBHOOK_SECRET = "whsec_test-secret-0123456789"
RECEIVER_URL = "https://receiver.test/hooks"


class WebhookReceiver:
    """Stand-in for a customer's webhook endpoint.

    Captures every request and answers according to ``mode``:
    ``respond`` (``status_code``/``body``), ``connect_error``,
    ``read_timeout`` or ``hang`` (sleeps for ``delay`` seconds, then responds).
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.mode = "respond"
        self.status_code = 200
        self.body = '{"received": true}'
        self.delay = 0.0
        self.on_request = None

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.on_request is not None:
            await self.on_request(request)
        if self.mode == "connect_error":
            raise httpx.ConnectError("Connection refused", request=request)
        if self.mode == "read_timeout":
            raise httpx.ReadTimeout("Read timed out", request=request)
        if self.mode == "hang":
            await asyncio.sleep(self.delay)
        return httpx.Response(self.status_code, text=self.body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory over a fresh SQLite database with all tables created."""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'gateway.db'}",
        echo=False,
        poolclass=NullPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Test database session for fixtures and assertions."""
    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()
            await session.close()


@pytest.fixture()
def receiver() -> WebhookReceiver:
    return WebhookReceiver()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, receiver: WebhookReceiver) -> AsyncGenerator[AsyncClient, None]:
    """Test client wired to the test database and the mock webhook receiver."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_webhook_transport] = lambda: receiver.transport

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_org(db: AsyncSession) -> Organization:
    org = Organization(name="Test Builders")
    db.add(org)
    await db.commit()
    return org


@pytest_asyncio.fixture
async def other_org(db: AsyncSession) -> Organization:
    """A second tenant for isolation checks."""
    org = Organization(name="Other Builders")
    db.add(org)
    await db.commit()
    return org


async def create_user(
    db: AsyncSession,
    org_id: UUID,
    email: str,
    role: UserRole = UserRole.VIEWER,
    is_active: bool = True,
) -> User:
    """User factory for creating test users."""
    user = User(org_id=org_id, email=email, role=role, is_active=is_active)
    db.add(user)
    await db.commit()
    return user


@pytest_asyncio.fixture
async def test_admin_user(db: AsyncSession, test_org: Organization) -> User:
    return await create_user(db, test_org.id, "admin@test.com", role=UserRole.ADMIN)


@pytest_asyncio.fixture
async def test_member_user(db: AsyncSession, test_org: Organization) -> User:
    return await create_user(db, test_org.id, "member@test.com", role=UserRole.MEMBER)


@pytest_asyncio.fixture
async def test_viewer_user(db: AsyncSession, test_org: Organization) -> User:
    return await create_user(db, test_org.id, "viewer@test.com", role=UserRole.VIEWER)


@pytest_asyncio.fixture
async def other_admin_user(db: AsyncSession, other_org: Organization) -> User:
    return await create_user(db, other_org.id, "admin@other.com", role=UserRole.ADMIN)


def auth_headers(user: User) -> dict[str, str]:
    """Bearer token as the identity provider would mint it."""
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


async def create_api_key(
    db: AsyncSession,
    org_id: UUID,
    permissions: list[str],
    key_name: str = "Integration key",
    expires_at: datetime | None = None,
    rate_limit_per_hour: int = 1000,
    is_active: bool = True,
) -> tuple[str, ApiKey]:
    """API key factory; returns the plaintext alongside the stored row."""
    plaintext = generate_api_key()
    key = ApiKey(
        org_id=org_id,
        key_name=key_name,
        api_key_hash=digest_key(plaintext),
        api_key_prefix=display_prefix(plaintext),
        permissions=permissions,
        expires_at=expires_at,
        rate_limit_per_hour=rate_limit_per_hour,
        is_active=is_active,
    )
    db.add(key)
    await db.commit()
    return plaintext, key


async def create_webhook_endpoint(
    db: AsyncSession,
    org_id: UUID,
    events: list[str],
    url: str = RECEIVER_URL,
    secret_token: str = WEBHOOK_SECRET,
    timeout_seconds: int = 5,
    is_active: bool = True,
    failure_count: int = 0,
    name: str = "Accounting sync",
) -> WebhookEndpoint:
    """Webhook endpoint factory."""
    endpoint = WebhookEndpoint(
        org_id=org_id,
        name=name,
        url=url,
        secret_token=secret_token,
        events=events,
        timeout_seconds=timeout_seconds,
        is_active=is_active,
        failure_count=failure_count,
    )
    db.add(endpoint)
    await db.commit()
    return endpoint
