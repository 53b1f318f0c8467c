"""
Pytest configuration and shared fixtures for backend tests.
"""

import os
import sys
from pathlib import Path

# Add backend directory to path for imports
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time; point them at SQLite before anything loads
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "development")

import pytest
from typing import AsyncGenerator, Callable
from uuid import uuid4

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Import after path is set
from infrastructure.database.models import Base
from infrastructure.database.connection import get_db
from api.dependencies import token_service


# Database URL for testing (in-memory SQLite)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def db_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop all tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def db_session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async_session = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def account_id() -> str:
    """A fresh account ID."""
    return str(uuid4())


@pytest.fixture
def make_auth_headers() -> Callable[..., dict]:
    """
    Factory for authentication headers.

    Usage:
        headers = make_auth_headers(account_id, "gold")
    """
    def _make(account_id: str, tier: str | None = "freemium", **kwargs) -> dict:
        access_token = token_service.create_access_token(account_id, tier=tier, **kwargs)
        return {"Authorization": f"Bearer {access_token}"}

    return _make


@pytest.fixture
def auth_headers(account_id: str, make_auth_headers) -> dict:
    """Authentication headers for a freemium account."""
    return make_auth_headers(account_id, "freemium")


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP client for testing."""
    # Import app here to avoid circular imports
    from main import app

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    # Reset rate limiter state between tests to prevent cross-test 429s
    app.state.limiter.reset()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()
