"""Database configuration and session management for the URL shortener.

This module provides SQLAlchemy async engine setup, session management,
and database lifecycle operations. PostgreSQL (asyncpg) is the deployment
backend; any async dialect with ``UPDATE ... RETURNING`` and unique
constraints works, which is how the test suite runs on aiosqlite.

Flow Diagram — Database Operations
=================================
::
    ┌─────────────┐
    │  Application│
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ get_db()     │
    │ dependency  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Create async │
    │ session     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Yield to     │
    │ request     │
    │ handler     │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Auto-close   │
    │ (finally)    │
    └─────────────┘

How to Use
===========
**Step 1 — Initialize on startup**::
    await init_db()  # Creates tables

**Step 2 — Use in FastAPI endpoints**::
    @router.get("/urls")
    async def get_urls(db: AsyncSession = Depends(get_db)):
        result = await db.execute(select(URL))
        return result.scalars().all()

**Step 3 — Cleanup on shutdown**::
    await close_db()

Key Behaviours
===============
- Async sessions are automatically closed after each request.
- Connection pooling is configured for production workloads.
- Tables are created automatically on application startup.
- Engine is properly disposed on application shutdown.

Classes:
    Base:  SQLAlchemy declarative base for all models.

Functions:
    build_engine():  Creates an async engine with pool settings for the URL.
    get_db():  FastAPI dependency for database sessions.
    init_db():  Creates all tables on startup.
    close_db():  Disposes the engine on shutdown.
    storage_guard():  Timeout + error translation around storage calls.
"""

import asyncio
import logging
from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from shortener.config import get_settings
from shortener.exceptions import StorageUnavailableError

__all__ = [
    "Base",
    "async_session",
    "build_engine",
    "close_db",
    "engine",
    "get_db",
    "init_db",
    "storage_guard",
]

settings = get_settings()
logger = logging.getLogger("urlshortener")


def build_engine(database_url: str) -> AsyncEngine:
    if database_url.startswith("sqlite"):
        # SQLite serializes writers; wait on the file lock instead of failing fast.
        return create_async_engine(
            database_url,
            echo=False,
            connect_args={"timeout": settings.STORAGE_TIMEOUT_SECONDS * 6},
        )
    return create_async_engine(
        database_url,
        echo=(settings.APP_ENV == "development"),
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.STORAGE_TIMEOUT_SECONDS,
        pool_pre_ping=True,
    )


engine = build_engine(settings.DATABASE_URL)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(target: AsyncEngine | None = None) -> None:
    # Import models so their tables are registered on Base.metadata.
    from shortener import models  # noqa: F401

    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()


@asynccontextmanager
async def storage_guard(
    session: AsyncSession, operation: str, timeout: float | None = None
) -> AsyncIterator[None]:
    """Bound a unit of storage work by the request timeout.

    Timeouts and driver/database errors roll the session back and surface as
    :class:`StorageUnavailableError`. Domain errors raised inside the block,
    including ones translated from ``IntegrityError``, pass through untouched.
    """
    limit = settings.STORAGE_TIMEOUT_SECONDS if timeout is None else timeout
    try:
        async with asyncio.timeout(limit):
            yield
    except (TimeoutError, SQLAlchemyError, OSError) as exc:
        logger.error(f"Storage failure during {operation}: {exc!r}")
        try:
            await session.rollback()
        except SQLAlchemyError as rollback_exc:
            logger.debug(f"Rollback after {operation} failure also failed: {rollback_exc!r}")
        raise StorageUnavailableError(operation) from exc
