"""Unit tests for the URL shortening service.

The service runs against a real SQLite store and counter; only Redis is
mocked.
"""

import asyncio
import logging
from unittest.mock import AsyncMock

import pytest
import redis.asyncio as redis
from conftest import count_urls, counter_value

from shortener.allocator import SequenceAllocator
from shortener.exceptions import InvalidUrlError, StorageConflictError, StorageUnavailableError
from shortener.redis import RedirectCache
from shortener.store import URLRecordStore
from shortener.url_service import URLShorteningService, validate_long_url

# ============================================================================
# TEST FIXTURES AND UTILITIES
# ============================================================================


def make_service(session, cache: RedirectCache | None = None, settings=None) -> URLShorteningService:
    return URLShorteningService(
        store=URLRecordStore(session),
        allocator=SequenceAllocator(session),
        cache=cache,
        settings=settings,
    )


@pytest.fixture
def service(db_session, cache: RedirectCache, settings) -> URLShorteningService:
    return make_service(db_session, cache=cache, settings=settings)


# ============================================================================
# URL VALIDATION
# ============================================================================


@pytest.mark.parametrize(
    "long_url",
    [
        "https://example.com",
        "http://example.com/a/b/c",
        "https://sub.example.co.uk/path?q=1&x=y#frag",
        "https://example.com:8443/port",
        "http://localhost:3000/dashboard",
        "http://intranet/wiki",
        "https://example.com/search?q",
        "https://example.com/?a=1&&b=2",
    ],
)
def test_validate_accepts_http_urls(long_url: str) -> None:
    assert validate_long_url(long_url) == long_url


def test_validate_trims_whitespace() -> None:
    assert validate_long_url("  https://example.com/a \n") == "https://example.com/a"


@pytest.mark.parametrize(
    "long_url",
    [
        "example.com",
        "ftp://example.com/file",
        "javascript:alert(1)",
        "http://",
        "https:///path-only",
        "not a url",
        "https://exa mple.com",
        "https://example.com/a b",
        "https://my_host.example.com/x",
    ],
)
def test_validate_rejects_malformed_urls(long_url: str) -> None:
    with pytest.raises(InvalidUrlError):
        validate_long_url(long_url)


@pytest.mark.parametrize("long_url", ["", "   ", None, 123, ["https://example.com"]])
def test_validate_rejects_missing_or_non_string(long_url) -> None:
    with pytest.raises(InvalidUrlError, match="required"):
        validate_long_url(long_url)


# ============================================================================
# SHORTENING
# ============================================================================


@pytest.mark.asyncio
async def test_first_code_on_empty_store(service: URLShorteningService, db_session, settings) -> None:
    result = await service.shorten("https://example.com/a/b/c")

    assert result.short_code == "q0V"
    assert result.created is True
    assert result.original_url == "https://example.com/a/b/c"
    assert result.short_url == f"{settings.short_url_prefix}/q0V"
    assert await counter_value(db_session) == 100001


@pytest.mark.asyncio
async def test_shorten_same_url_is_idempotent(service: URLShorteningService, db_session) -> None:
    first = await service.shorten("https://example.com/a/b/c")
    second = await service.shorten("https://example.com/a/b/c")

    assert second.short_code == first.short_code == "q0V"
    assert second.created is False
    assert await count_urls(db_session) == 1
    # Deduplication does not consume a counter value.
    assert await counter_value(db_session) == 100001


@pytest.mark.asyncio
async def test_dedup_compares_trimmed_url(service: URLShorteningService, db_session) -> None:
    first = await service.shorten("  https://example.com/a  ")
    second = await service.shorten("https://example.com/a")

    assert first.original_url == "https://example.com/a"
    assert second.short_code == first.short_code
    assert second.created is False
    assert await count_urls(db_session) == 1


@pytest.mark.asyncio
async def test_distinct_urls_get_consecutive_codes(service: URLShorteningService) -> None:
    first = await service.shorten("https://example.com/1")
    second = await service.shorten("https://example.com/2")
    third = await service.shorten("https://example.com/1/")

    assert [first.short_code, second.short_code, third.short_code] == ["q0V", "q0W", "q0X"]
    assert all(r.created for r in (first, second, third))


@pytest.mark.asyncio
@pytest.mark.parametrize("long_url", ["", "ftp://example.com", "example.com", None])
async def test_invalid_url_touches_no_storage(service: URLShorteningService, db_session, long_url) -> None:
    with pytest.raises(InvalidUrlError):
        await service.shorten(long_url)

    assert await counter_value(db_session) is None
    assert await count_urls(db_session) == 0


@pytest.mark.asyncio
async def test_concurrent_distinct_urls_get_distinct_codes(session_factory, settings) -> None:
    async with session_factory() as session:
        await SequenceAllocator(session).ensure_initialized()

    async def shorten(index: int) -> str:
        async with session_factory() as session:
            result = await make_service(session, settings=settings).shorten(f"https://example.com/page/{index}")
            return result.short_code

    codes = await asyncio.gather(*(shorten(i) for i in range(25)))

    assert len(set(codes)) == 25
    async with session_factory() as session:
        assert await count_urls(session) == 25
        assert await counter_value(session) == 100025


@pytest.mark.asyncio
async def test_new_code_is_written_to_cache(service: URLShorteningService, mock_redis: AsyncMock) -> None:
    await service.shorten("https://example.com/a/b/c")
    mock_redis.set.assert_awaited_once_with("url:q0V", "https://example.com/a/b/c", ex=3600)


@pytest.mark.asyncio
async def test_dedup_does_not_rewrite_cache(service: URLShorteningService, mock_redis: AsyncMock) -> None:
    await service.shorten("https://example.com/a")
    await service.shorten("https://example.com/a")
    assert mock_redis.set.await_count == 1


@pytest.mark.asyncio
async def test_cache_failure_does_not_fail_creation(
    service: URLShorteningService, mock_redis: AsyncMock, db_session
) -> None:
    mock_redis.set.side_effect = redis.ConnectionError("connection refused")

    result = await service.shorten("https://example.com/a")

    assert result.created is True
    assert await count_urls(db_session) == 1


@pytest.mark.asyncio
async def test_shorten_without_cache(db_session, settings) -> None:
    result = await make_service(db_session, settings=settings).shorten("https://example.com/a")
    assert result.short_code == "q0V"


# ============================================================================
# STORAGE FAILURES
# ============================================================================


@pytest.mark.asyncio
async def test_existing_allocated_code_is_a_conflict(
    service: URLShorteningService, db_session, caplog: pytest.LogCaptureFixture
) -> None:
    # Simulates a counter that was reset after "q0V" had been issued.
    await URLRecordStore(db_session).create("https://example.com/old", "q0V")

    with caplog.at_level(logging.CRITICAL, logger="urlshortener"):
        with pytest.raises(StorageConflictError) as exc_info:
            await service.shorten("https://example.com/new")

    assert exc_info.value.short_code == "q0V"
    assert exc_info.value.status_code == 500
    assert any(record.levelno == logging.CRITICAL and "q0V" in record.getMessage() for record in caplog.records)
    # Not retried: one counter increment and no new record.
    assert await counter_value(db_session) == 100001
    assert await count_urls(db_session) == 1


@pytest.mark.asyncio
async def test_unreachable_store_is_unavailable(broken_session, settings) -> None:
    with pytest.raises(StorageUnavailableError) as exc_info:
        await make_service(broken_session, settings=settings).shorten("https://example.com/a")
    assert exc_info.value.status_code == 503
    assert "Please try again" in exc_info.value.public_message
