"""URL Shortener Service Layer - Shortening

This module owns the write path: validating a long URL, reusing an existing
short code for a URL that was already shortened, and otherwise allocating a
fresh sequence value, encoding it and persisting the record.

URL Creation Flow
-----------------
::
    ┌─────────────┐
    │ shorten()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate URL│──── invalid ───► InvalidUrlError (no storage access)
    │ (trimmed)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Lookup by   │──── found ─────► existing code, created=False
    │ original URL│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Allocator   │
    │ next()      │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ base62      │
    │ encode()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Store       │──── duplicate ─► StorageConflictError (CRITICAL log)
    │ create()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache code  │
    │ -> URL      │
    └──────┬──────┘
           ▼
      created=True

Key Behaviours
===============
- Validation errors are raised before any storage call, so a rejected URL
  never advances the counter.
- Shortening the same URL twice returns the same short code.
- A duplicate short code after allocation is never retried with a new value:
  it means the counter is broken, and retrying would hide that.
- At most one counter increment and one new record per call.
"""

import logging
import time
from dataclasses import dataclass
from urllib.parse import urlsplit

import validators
from prometheus_client import Counter, Histogram

from shortener.allocator import SequenceAllocator
from shortener.config import Settings, get_settings
from shortener.encoding import encode
from shortener.enums import RequestStatus
from shortener.exceptions import (
    DuplicateShortCodeError,
    InvalidUrlError,
    StorageConflictError,
    StorageUnavailableError,
)
from shortener.redis import RedirectCache
from shortener.store import URLRecordStore

__all__ = ["ShortenResult", "URLShorteningService", "validate_long_url"]

ALLOWED_SCHEMES = frozenset({"http", "https"})

URL_CREATION_REQUESTS_TOTAL = Counter(
    "url_shortener_creation_requests_total",
    "Total URL creation requests",
    ["status"],
)
URL_CREATION_DURATION = Histogram(
    "url_shortener_creation_duration_seconds",
    "Time taken to create short URLs",
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)


@dataclass(frozen=True)
class ShortenResult:
    short_code: str
    short_url: str
    original_url: str
    created: bool


def validate_long_url(long_url: object) -> str:
    """Return the trimmed URL or raise :class:`InvalidUrlError`."""
    if not isinstance(long_url, str) or not long_url.strip():
        raise InvalidUrlError("Long URL is required and must be a string")

    candidate = long_url.strip()
    parts = urlsplit(candidate)
    if parts.scheme.lower() not in ALLOWED_SCHEMES or not parts.netloc:
        raise InvalidUrlError()
    if not validators.url(candidate, simple_host=True, strict_query=False):
        raise InvalidUrlError()
    return candidate


class URLShorteningService:
    """Creates short codes for long URLs.

    Example:
        >>> service = URLShorteningService.from_context(ctx)
        >>> result = await service.shorten("https://example.com/a/b/c")
        >>> result.short_code, result.created
        ('q0V', True)
    """

    def __init__(
        self,
        store: URLRecordStore,
        allocator: SequenceAllocator,
        cache: RedirectCache | None = None,
        settings: Settings | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._store = store
        self._allocator = allocator
        self._cache = cache
        self._settings = settings or get_settings()
        self._logger = logger or logging.getLogger("urlshortener")

    @classmethod
    def from_context(cls, ctx) -> "URLShorteningService":
        return cls(
            store=URLRecordStore(ctx.database),
            allocator=SequenceAllocator(ctx.database),
            cache=ctx.cache,
            settings=ctx.settings,
            logger=ctx.logger,
        )

    def short_url_for(self, short_code: str) -> str:
        return f"{self._settings.short_url_prefix}/{short_code}"

    async def shorten(self, long_url: object) -> ShortenResult:
        """Return the short code for ``long_url``, creating one if needed.

        Raises:
            InvalidUrlError: Empty, malformed or non-http(s) URL.
            StorageConflictError: The freshly allocated code already existed.
            StorageUnavailableError: The store or counter could not be reached.
        """
        start_time = time.perf_counter()
        try:
            original_url = validate_long_url(long_url)
        except InvalidUrlError:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.VALIDATION_ERROR).inc()
            raise

        try:
            existing = await self._store.find_by_original_url(original_url)
            if existing is not None:
                URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.DEDUPLICATED).inc()
                self._logger.info(f"URL already shortened as {existing.short_code}: {original_url}")
                return ShortenResult(
                    short_code=existing.short_code,
                    short_url=self.short_url_for(existing.short_code),
                    original_url=existing.original_url,
                    created=False,
                )

            sequence_value = await self._allocator.next()
            short_code = encode(sequence_value)

            try:
                url = await self._store.create(original_url, short_code)
            except DuplicateShortCodeError as exc:
                URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CONFLICT).inc()
                self._logger.critical(
                    f"Allocated short code {short_code} (sequence value {sequence_value}) already exists; "
                    f"counter '{self._allocator.name}' may have been reset or shared"
                )
                raise StorageConflictError(short_code) from exc

            if self._cache is not None:
                await self._cache.set_url(url.short_code, url.original_url)

            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.CREATED).inc()
            self._logger.info(f"URL created: {url.short_code} -> {url.original_url}")
            return ShortenResult(
                short_code=url.short_code,
                short_url=self.short_url_for(url.short_code),
                original_url=url.original_url,
                created=True,
            )
        except StorageUnavailableError as exc:
            URL_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            self._logger.error(f"URL creation failed, storage unavailable: {exc}")
            raise
        finally:
            URL_CREATION_DURATION.observe(time.perf_counter() - start_time)
