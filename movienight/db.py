"""Database session management and repositories."""

from __future__ import annotations

from typing import Any, Iterator

from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from movienight.core.config import get_settings
from movienight.models import SNAPSHOT_KEYS, Base, Snapshot


engine = create_engine(get_settings().database_url, future=True)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def init_models() -> None:
    """Create tables if they do not exist (handy for local dev)."""
    Base.metadata.create_all(bind=engine)


def get_session() -> Iterator[Session]:
    """FastAPI-friendly dependency that manages commits/rollbacks."""

    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


class UnknownSnapshotKey(KeyError):
    pass


class SnapshotRepository:
    """Read and overwrite the persisted watchlist / last-search documents."""

    @staticmethod
    def _check(key: str) -> None:
        if key not in SNAPSHOT_KEYS:
            raise UnknownSnapshotKey(key)

    def get(self, session: Session, key: str) -> Any | None:
        self._check(key)
        query = select(Snapshot).where(Snapshot.key == key)
        snapshot = session.execute(query).scalar_one_or_none()
        return snapshot.payload if snapshot else None

    def put(self, session: Session, key: str, payload: Any) -> Snapshot:
        self._check(key)
        snapshot = session.get(Snapshot, key)
        if snapshot is None:
            snapshot = Snapshot(key=key, payload=payload)
            session.add(snapshot)
        else:
            snapshot.payload = payload
        session.flush()
        session.refresh(snapshot)
        return snapshot

    def delete(self, session: Session, key: str) -> bool:
        self._check(key)
        snapshot = session.get(Snapshot, key)
        if snapshot is None:
            return False
        session.delete(snapshot)
        session.flush()
        return True
