"""Sequence allocation backed by a durable counter row.

Each call to :meth:`SequenceAllocator.next` performs exactly one
``UPDATE sequence_counters SET value = value + 1 ... RETURNING value``. The
increment happens inside the database, so concurrent callers, other worker
processes and restarts can never observe the same value twice. A rolled-back
transaction may leave a gap; that is acceptable, reuse is not.
"""

import logging

from sqlalchemy import insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from shortener.config import get_settings
from shortener.database import storage_guard
from shortener.exceptions import StorageUnavailableError
from shortener.models import SequenceCounter

__all__ = ["SequenceAllocator"]

logger = logging.getLogger("urlshortener")


class SequenceAllocator:
    """Issues strictly increasing integers from a named counter.

    Args:
        session: Session the counter statements run on. Every allocation is
            committed immediately so the value is durable before it is used.
        name: Counter row name.
        start: Value the row is created with; the first allocation returns
            ``start + 1``.
        timeout: Storage timeout in seconds (defaults to settings).
    """

    def __init__(
        self,
        session: AsyncSession,
        name: str | None = None,
        start: int | None = None,
        timeout: float | None = None,
    ):
        settings = get_settings()
        self._session = session
        self._name = name or settings.SEQUENCE_NAME
        self._start = settings.SEQUENCE_START if start is None else start
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self._name

    async def ensure_initialized(self) -> None:
        """Create the counter row if it does not exist yet.

        Safe to race: when two processes insert concurrently the loser's
        primary-key violation is ignored and the winner's row stands.
        """
        async with storage_guard(self._session, "sequence initialization", self._timeout):
            result = await self._session.execute(
                select(SequenceCounter.value).where(SequenceCounter.name == self._name)
            )
            if result.scalar_one_or_none() is not None:
                await self._session.commit()
                return

            try:
                await self._session.execute(
                    insert(SequenceCounter).values(name=self._name, value=self._start)
                )
                await self._session.commit()
                logger.info(f"Sequence counter '{self._name}' initialized at {self._start}")
            except IntegrityError:
                await self._session.rollback()
                logger.debug(f"Sequence counter '{self._name}' was initialized concurrently")

    async def next(self) -> int:
        """Atomically advance the counter and return the new value."""
        async with storage_guard(self._session, "sequence allocation", self._timeout):
            value = await self._increment()
            if value is None:
                logger.warning(f"Sequence counter '{self._name}' missing, initializing on first use")
                await self.ensure_initialized()
                value = await self._increment()

        if value is None:
            raise StorageUnavailableError("sequence allocation")
        return value

    async def _increment(self) -> int | None:
        result = await self._session.execute(
            update(SequenceCounter)
            .where(SequenceCounter.name == self._name)
            .values(value=SequenceCounter.value + 1)
            .returning(SequenceCounter.value)
            .execution_options(synchronize_session=False)
        )
        value = result.scalar_one_or_none()
        await self._session.commit()
        return value
