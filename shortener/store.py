"""Durable URL record store.

Thin repository over the ``urls`` table. Lookups are exact matches; creation
leans on the ``UNIQUE(short_code)`` constraint rather than a check-then-insert,
and click accounting is a single in-database increment.
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.database import storage_guard
from shortener.exceptions import DuplicateShortCodeError
from shortener.models import URL

__all__ = ["URLRecordStore"]

logger = logging.getLogger("urlshortener")


class URLRecordStore:
    def __init__(self, session: AsyncSession, timeout: float | None = None):
        self._session = session
        self._timeout = timeout

    async def find_by_original_url(self, original_url: str) -> URL | None:
        """Return the earliest record for ``original_url``, if any.

        The caller is expected to pass the trimmed URL; no normalization
        happens here.
        """
        async with storage_guard(self._session, "lookup by original URL", self._timeout):
            result = await self._session.execute(
                select(URL).where(URL.original_url == original_url).order_by(URL.id).limit(1)
            )
            return result.scalars().first()

    async def find_by_short_code(self, short_code: str) -> URL | None:
        async with storage_guard(self._session, "lookup by short code", self._timeout):
            result = await self._session.execute(select(URL).where(URL.short_code == short_code))
            return result.scalar_one_or_none()

    async def create(self, original_url: str, short_code: str) -> URL:
        """Insert a new record with zero clicks.

        Raises:
            DuplicateShortCodeError: The database rejected ``short_code`` as
                already taken.
            StorageUnavailableError: Any other storage failure or timeout.
        """
        async with storage_guard(self._session, "record creation", self._timeout):
            url = URL(short_code=short_code, original_url=original_url, clicks=0)
            self._session.add(url)
            try:
                await self._session.commit()
            except IntegrityError as exc:
                await self._session.rollback()
                raise DuplicateShortCodeError(short_code) from exc
            await self._session.refresh(url)
            return url

    async def increment_clicks(self, short_code: str) -> None:
        """Add one click to ``short_code``; a missing record is ignored."""
        async with storage_guard(self._session, "click increment", self._timeout):
            result = await self._session.execute(
                update(URL)
                .where(URL.short_code == short_code)
                .values(clicks=URL.clicks + 1)
                .execution_options(synchronize_session=False)
            )
            await self._session.commit()
            if result.rowcount == 0:
                logger.debug(f"Click increment skipped, no record for {short_code}")
