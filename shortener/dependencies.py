"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject database, cache and click
accounting dependencies with consistent naming across all API endpoints. Shared
resources live on one ``ServiceManager`` created at startup; only the database
session is per request.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.clicks import ClickRecorder
from shortener.config import Settings, get_settings
from shortener.database import async_session, get_db
from shortener.redis import RedirectCache, get_redis
from shortener.resolution_service import URLResolutionService
from shortener.url_service import URLShorteningService


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Holder for resources shared by every request.

    Created once at module import and initialized in the application
    lifespan. Tests initialize it with their own session factory and a mocked
    Redis client.
    """

    def __init__(self) -> None:
        self._initialized = False
        self.cache: RedirectCache | None = None
        self.clicks: ClickRecorder | None = None

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        cache_client: redis.Redis | None = None,
    ) -> None:
        """Initialize shared resources once at startup."""
        if self._initialized:
            return
        self.settings = get_settings()
        self.logger = self._setup_logger()
        self.session_factory = session_factory or async_session

        if cache_client is None and self.settings.CACHE_ENABLED:
            cache_client = await get_redis()
        self.cache = RedirectCache(cache_client, logger=self.logger) if cache_client is not None else None

        self.clicks = ClickRecorder(self.session_factory, self.logger)
        self._initialized = True
        self.logger.info(
            f"Service manager initialized (cache={'on' if self.cache else 'off'}, env={self.settings.APP_ENV})"
        )

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("urlshortener")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
        logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Let pending click increments finish, then drop shared resources."""
        if self.clicks is not None:
            await self.clicks.drain()
        self.cache = None
        self.clicks = None
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request view over the shared resources.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=time.time)

    @property
    def cache(self) -> RedirectCache | None:
        return self.service_manager.cache

    @property
    def clicks(self) -> ClickRecorder:
        return self.service_manager.clicks

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger carrying the request context in ``extra``."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager.initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        request_id=request.headers.get("x-request-id") or str(uuid.uuid4()),
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


def get_shortening_service(ctx: RequestContext = Depends(get_request_context)) -> URLShorteningService:
    return URLShorteningService.from_context(ctx)


def get_resolution_service(ctx: RequestContext = Depends(get_request_context)) -> URLResolutionService:
    return URLResolutionService.from_context(ctx)
