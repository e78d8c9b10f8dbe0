"""Detached click accounting.

A redirect must never wait on, or fail because of, the click counter. The
recorder therefore schedules each increment as its own asyncio task with its
own database session (the request's session is closed once the response is
sent) and keeps no result channel back to the caller. Failures are logged
and counted, nothing more; lost increments while storage is down are an
accepted trade-off.
"""

import asyncio
import logging

from prometheus_client import Counter
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from shortener.exceptions import StorageUnavailableError
from shortener.store import URLRecordStore

__all__ = ["ClickRecorder"]

CLICK_INCREMENTS_TOTAL = Counter(
    "url_shortener_click_increments_total",
    "Click increments applied to the URL store",
)
CLICK_INCREMENT_FAILURES_TOTAL = Counter(
    "url_shortener_click_increment_failures_total",
    "Click increments dropped because the store failed",
)


class ClickRecorder:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], logger: logging.Logger | None = None):
        self._session_factory = session_factory
        self._logger = logger or logging.getLogger("urlshortener")
        self._pending: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    def record(self, short_code: str) -> None:
        """Schedule one click for ``short_code`` and return immediately."""
        task = asyncio.create_task(self._increment(short_code), name=f"click:{short_code}")
        # The event loop only keeps weak references to tasks.
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for every scheduled increment to settle."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _increment(self, short_code: str) -> None:
        try:
            async with self._session_factory() as session:
                await URLRecordStore(session).increment_clicks(short_code)
            CLICK_INCREMENTS_TOTAL.inc()
        except StorageUnavailableError as exc:
            CLICK_INCREMENT_FAILURES_TOTAL.inc()
            self._logger.warning(f"Click increment dropped for {short_code}: {exc}")
        except Exception:
            CLICK_INCREMENT_FAILURES_TOTAL.inc()
            self._logger.exception(f"Unexpected error while recording click for {short_code}")
