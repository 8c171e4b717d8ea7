"""Test fixtures — in-memory SQLite store, in-process cache, fast bcrypt.

Learn: Testing pattern for async SQLAlchemy + FastAPI without services:

1. Each test gets its own in-memory SQLite database (aiosqlite). StaticPool
   keeps one connection alive so every session sees the same database.
2. FakeCache implements the Cache protocol over a dict and honours TTLs,
   so expiry-dependent behaviour (registry TTLs, snapshot expiry) is real.
3. bcrypt runs at rounds=4: same code path, a fraction of the cost.
4. The HTTP client overrides get_db / get_settings / get_cache /
   get_password_strategy so routes use the fixtures above.
"""

import time
from typing import Optional

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from warden.auth.dependencies import get_password_strategy, get_settings
from warden.auth.password import BcryptPasswordStrategy
from warden.cache import get_cache
from warden.config import Settings
from warden.db.engine import get_db
from warden.db.models import Base
from warden.main import app
from warden.services.auth_service import AuthService
from warden.services.session_service import SessionService

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
TEST_SECRET = "test-secret-that-is-long-enough-for-hkdf-and-hmac"


class FakeCache:
    """Dict-backed Cache with per-key TTL (seconds, monotonic clock)."""

    def __init__(self):
        self.store: dict[str, tuple[str, float]] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str) -> Optional[str]:
        entry = self.store.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if expires_at <= time.monotonic():
            del self.store[key]
            return None
        return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        self.store[key] = (value, time.monotonic() + ttl_seconds)
        self.ttls[key] = ttl_seconds

    async def delete(self, key: str) -> None:
        self.store.pop(key, None)
        self.ttls.pop(key, None)


def make_settings(**overrides) -> Settings:
    values = {"secret": TEST_SECRET, "environment": "development"}
    values.update(overrides)
    return Settings(**values)


@pytest_asyncio.fixture()
async def engine():
    engine = create_async_engine(
        TEST_DB_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(engine):
    """Per-test session on a fresh database."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture()
async def test_settings():
    return make_settings()


@pytest_asyncio.fixture()
async def cache():
    return FakeCache()


@pytest_asyncio.fixture()
async def password_strategy():
    return BcryptPasswordStrategy(rounds=4)


@pytest_asyncio.fixture()
async def session_service(db_session, test_settings, cache):
    return SessionService(db_session, test_settings, cache)


@pytest_asyncio.fixture()
async def auth_service(db_session, test_settings, password_strategy, session_service):
    return AuthService(
        db_session, test_settings, password_strategy, sessions=session_service
    )


@pytest_asyncio.fixture()
async def client(db_session, test_settings, cache, password_strategy):
    """HTTP client wired to the test database, cache, and settings."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_cache] = lambda: cache
    app.dependency_overrides[get_password_strategy] = lambda: password_strategy

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
