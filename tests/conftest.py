"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- In-memory SQLite database shared by every session of a test
- Redis client (in-memory fake)
- Identity service double and reset-code backends
- HTTP client with dependency overrides
"""

import os
import pytest
from typing import AsyncGenerator, List
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fakeredis import FakeAsyncRedis

# Set test environment variables BEFORE importing the app
os.environ["MODE"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SENTRY_DSN"] = ""
os.environ["SMTP_USERNAME"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["RESET_CODE_MODE"] = "side_channel"

from restock.main import app
from restock.api.dependencies import get_flow_registry, get_redis
from restock.core.reset_flow import PasswordResetFlow
from restock.db.base import Base
from restock.services.flow_registry import FlowRegistry
from restock.services.reset_backends import SideChannelCodeBackend

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


# ==================== Database ====================

@pytest.fixture
async def test_engine():
    """
    In-memory database with all tables created.

    StaticPool keeps a single connection so every session sees the same data.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ==================== Redis ====================

@pytest.fixture
async def redis_client() -> AsyncGenerator[FakeAsyncRedis, None]:
    """
    Create fake Redis client (in-memory) for each test.
    """
    redis = FakeAsyncRedis()
    yield redis
    await redis.flushall()
    await redis.aclose()


# ==================== Reset backends ====================

@pytest.fixture
def identity(mocker):
    """
    Identity service double; every method is an AsyncMock.
    """
    return mocker.AsyncMock()


@pytest.fixture
def captured_codes(mocker) -> List[str]:
    """
    Capture verification codes instead of queueing the Celery task.
    """
    codes = []

    def mock_send_code(email: str, code: str):
        codes.append(code)

    mocker.patch(
        "restock.services.reset_backends.send_verification_code.delay",
        side_effect=mock_send_code,
    )
    return codes


@pytest.fixture
def side_channel_backend(identity, session_factory, captured_codes) -> SideChannelCodeBackend:
    return SideChannelCodeBackend(identity, session_factory, code_length=6, ttl_minutes=30)


@pytest.fixture
def registry(side_channel_backend) -> FlowRegistry:
    return FlowRegistry(lambda: PasswordResetFlow(side_channel_backend, code_length=6, password_min_length=6))


# ==================== FastAPI Client ====================

@pytest.fixture
async def client(registry: FlowRegistry, redis_client: FakeAsyncRedis) -> AsyncGenerator[AsyncClient, None]:
    """
    Create HTTP client for testing FastAPI endpoints.

    Overrides the flow registry and Redis dependencies with test fixtures.
    """

    async def override_get_redis():
        yield redis_client

    app.dependency_overrides[get_flow_registry] = lambda: registry
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def anyio_backend():
    return "asyncio"
