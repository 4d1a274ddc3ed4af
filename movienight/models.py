"""SQLAlchemy ORM models.

This module defines the "snapshots" table, a small key-value store holding the
client's watchlist and last search under fixed keys.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


WATCHLIST_KEY = "movieNight.watchlist"
LAST_SEARCH_KEY = "movieNight.lastSearch"
SNAPSHOT_KEYS = frozenset({WATCHLIST_KEY, LAST_SEARCH_KEY})


class Base(DeclarativeBase):
    pass


class Snapshot(Base):
    """JSON document stored under one of ``SNAPSHOT_KEYS``."""

    __tablename__ = "snapshots"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    payload: Mapped[Any] = mapped_column(JSON)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"Snapshot(key={self.key}, last_updated={self.last_updated})"
