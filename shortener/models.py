"""SQLAlchemy ORM models for the URL shortener application.

This module defines the database schema using SQLAlchemy declarative models
with the indexes and constraints the allocation path relies on.

Data Model Layout
=================
::
    urls table
    ├─ id (SERIAL PRIMARY KEY)
    ├─ short_code (VARCHAR(10) UNIQUE, INDEXED)
    ├─ original_url (TEXT NOT NULL, INDEXED)
    ├─ clicks (INTEGER DEFAULT 0)
    ├─ created_at (TIMESTAMPTZ, DEFAULT NOW())
    └─ updated_at (TIMESTAMPTZ, DEFAULT NOW(), ON UPDATE)

    sequence_counters table
    ├─ name (VARCHAR(64) PRIMARY KEY)
    └─ value (BIGINT NOT NULL)

How to Use
===========
**Step 1 — Import**::
    from shortener.models import URL, SequenceCounter

**Step 2 — Query URLs**::
    result = await db.execute(select(URL).where(URL.short_code == "q0V"))
    url = result.scalar_one_or_none()

Key Behaviours
===============
- short_code carries a UNIQUE constraint; it is the final guard against two
  records sharing a code, independent of application logic.
- original_url is indexed for the dedup lookup but deliberately not unique.
- clicks is only ever changed with an in-database ``clicks + 1`` update.
- sequence_counters holds one row per named sequence; the value is only
  advanced with an atomic ``value + 1`` update.

Classes:
    URL:  Represents a shortened URL mapping with click tracking.
    SequenceCounter:  Durable named counter backing short-code allocation.
"""

import datetime

from sqlalchemy import BigInteger, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from shortener.database import Base

__all__ = ["SHORT_CODE_MAX_LENGTH", "SequenceCounter", "URL"]

SHORT_CODE_MAX_LENGTH = 10


class URL(Base):
    __tablename__ = "urls"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    short_code: Mapped[str] = mapped_column(
        String(SHORT_CODE_MAX_LENGTH), unique=True, index=True, nullable=False
    )
    original_url: Mapped[str] = mapped_column(Text, nullable=False)
    clicks: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    # Hash index: long URLs overflow a btree index entry on PostgreSQL.
    __table_args__ = (Index("ix_urls_original_url", "original_url", postgresql_using="hash"),)

    def __repr__(self) -> str:
        return f"<URL(id={self.id}, short_code='{self.short_code}', clicks={self.clicks})>"


class SequenceCounter(Base):
    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[int] = mapped_column(BigInteger, nullable=False)

    def __repr__(self) -> str:
        return f"<SequenceCounter(name='{self.name}', value={self.value})>"
