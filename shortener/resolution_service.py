"""URL Shortener Service Layer - Resolution

Read path: turn a short code back into its original URL for redirects, and
serve the info lookup.

URL Lookup & Redirect Flow
---------------------------
::
    ┌─────────────┐
    │ resolve()    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Format check│──── bad ─────► InvalidShortCodeError
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Redis cache │──── hit ──────┐
    └──────┬──────┘               │
           ▼ miss                 │
    ┌─────────────┐               │
    │ URL store   │── absent ─► ShortCodeNotFoundError
    └──────┬──────┘               │
           ▼                      │
    ┌─────────────┐               │
    │ Fill cache  │               │
    └──────┬──────┘               │
           ▼                      ▼
    ┌───────────────────────────────┐
    │ ClickRecorder.record() (not   │
    │ awaited) and return the URL   │
    └───────────────────────────────┘
"""

import logging

from prometheus_client import Counter

from shortener.clicks import ClickRecorder
from shortener.encoding import is_valid_short_code
from shortener.enums import CacheStatus, RequestStatus
from shortener.exceptions import InvalidShortCodeError, ShortCodeNotFoundError
from shortener.models import URL
from shortener.redis import RedirectCache
from shortener.store import URLRecordStore

__all__ = ["URLResolutionService"]

URL_LOOKUP_REQUESTS_TOTAL = Counter(
    "url_shortener_lookup_requests_total",
    "Total URL lookup requests",
    ["status", "cache_hit"],
)


class URLResolutionService:
    def __init__(
        self,
        store: URLRecordStore,
        clicks: ClickRecorder,
        cache: RedirectCache | None = None,
        logger: logging.Logger | logging.LoggerAdapter | None = None,
    ):
        self._store = store
        self._clicks = clicks
        self._cache = cache
        self._logger = logger or logging.getLogger("urlshortener")

    @classmethod
    def from_context(cls, ctx) -> "URLResolutionService":
        return cls(
            store=URLRecordStore(ctx.database),
            clicks=ctx.clicks,
            cache=ctx.cache,
            logger=ctx.logger,
        )

    async def resolve(self, short_code: str) -> str:
        """Return the original URL for ``short_code`` and count the click.

        The click is scheduled on the :class:`ClickRecorder` and is not
        awaited; its outcome never affects the return value.

        Raises:
            InvalidShortCodeError: ``short_code`` is not 1-10 alphanumerics.
            ShortCodeNotFoundError: No record exists for ``short_code``.
            StorageUnavailableError: The store could not be reached.
        """
        self._check_format(short_code)

        original_url = await self._cached_url(short_code)
        cache_status = CacheStatus.HIT if original_url is not None else CacheStatus.MISS

        if original_url is None:
            url = await self._store.find_by_short_code(short_code)
            if url is None:
                URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=cache_status).inc()
                raise ShortCodeNotFoundError(short_code)
            original_url = url.original_url
            if self._cache is not None:
                await self._cache.set_url(short_code, original_url)

        self._clicks.record(short_code)
        URL_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=cache_status).inc()
        return original_url

    async def get_info(self, short_code: str) -> URL:
        """Return the full record, read from the store so clicks are current."""
        self._check_format(short_code)
        url = await self._store.find_by_short_code(short_code)
        if url is None:
            raise ShortCodeNotFoundError(short_code)
        return url

    def _check_format(self, short_code: str) -> None:
        if not is_valid_short_code(short_code):
            URL_LOOKUP_REQUESTS_TOTAL.labels(
                status=RequestStatus.VALIDATION_ERROR, cache_hit=CacheStatus.MISS
            ).inc()
            raise InvalidShortCodeError()

    async def _cached_url(self, short_code: str) -> str | None:
        if self._cache is None:
            return None
        return await self._cache.get_url(short_code)
