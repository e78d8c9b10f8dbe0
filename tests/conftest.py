"""Shared pytest fixtures for store, service and API tests.

Every test gets its own SQLite file (through aiosqlite) so counters and
records start empty, and a mocked Redis client standing in for the redirect
cache.
"""

import os

os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("CACHE_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./shortener-test.db")

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from shortener.allocator import SequenceAllocator
from shortener.config import Settings, get_settings
from shortener.database import build_engine, get_db, init_db
from shortener.dependencies import ServiceManager, get_service_manager
from shortener.main import app
from shortener.models import URL, SequenceCounter
from shortener.redis import RedirectCache


@pytest.fixture
def settings() -> Settings:
    return get_settings()


@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'shortener.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def broken_session(tmp_path) -> AsyncGenerator[AsyncSession, None]:
    """Session whose database file can never be opened."""
    broken_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'shortener.db'}")
    factory = async_sessionmaker(broken_engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        yield session
    await broken_engine.dispose()


@pytest.fixture
def mock_redis() -> AsyncMock:
    """Mock Redis client: every lookup is a miss, every write succeeds."""
    redis_client = AsyncMock(spec=redis.Redis)
    redis_client.get = AsyncMock(return_value=None)
    redis_client.set = AsyncMock(return_value=True)
    redis_client.ping = AsyncMock(return_value=True)
    return redis_client


@pytest.fixture
def cache(mock_redis: AsyncMock) -> RedirectCache:
    return RedirectCache(mock_redis, ttl_seconds=3600)


@pytest_asyncio.fixture
async def manager(session_factory, mock_redis) -> AsyncGenerator[ServiceManager, None]:
    service_manager = ServiceManager()
    await service_manager.initialize(session_factory=session_factory, cache_client=mock_redis)
    async with session_factory() as session:
        await SequenceAllocator(session).ensure_initialized()
    yield service_manager
    await service_manager.cleanup()


@pytest_asyncio.fixture
async def client(manager: ServiceManager, session_factory) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    async def override_get_service_manager() -> ServiceManager:
        return manager

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_manager] = override_get_service_manager

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


async def count_urls(session: AsyncSession) -> int:
    return (await session.execute(select(func.count()).select_from(URL))).scalar_one()


async def counter_value(session: AsyncSession, name: str = "urlId") -> int | None:
    result = await session.execute(select(SequenceCounter.value).where(SequenceCounter.name == name))
    return result.scalar_one_or_none()
