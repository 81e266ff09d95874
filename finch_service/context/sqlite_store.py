"""
sqlite_store.py - durable conversation history and preferences.

SQLAlchemy models for per-user history rows and preference keys, plus the
MemoryStore implementation used in production. Blocking database work runs in
a worker thread so the event loop keeps serving other users.

Rows are read back in insertion order (primary key), which is the order the
history cache relies on.
"""

import asyncio
import json
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TypeVar

from sqlalchemy import Column, Float, Integer, String, Text, create_engine, func, select, union
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session as OrmSession
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from finch_service.core.errors import StoreError
from finch_service.core.interfaces import MemoryStore
from finch_service.core.logging import logger
from finch_service.core.types import ConversationEntry, UserPreferences

T = TypeVar("T")

# --- Database models ---

Base = declarative_base()


class HistoryDB(Base):
    """One conversation entry for a user."""
    __tablename__ = "history"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, index=True, nullable=False)
    role = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    timestamp = Column(Float, nullable=False)

    def to_entry(self) -> ConversationEntry:
        return ConversationEntry(role=self.role, content=self.content, timestamp=self.timestamp)


class PreferenceDB(Base):
    """A single preference key for a user; the value is stored as JSON."""
    __tablename__ = "preferences"
    user_id = Column(String, primary_key=True)
    key = Column(String, primary_key=True)
    value = Column(Text, nullable=False)


class SqliteMemoryStore(MemoryStore):
    def __init__(self, dsn: str = "sqlite:///:memory:"):
        url = make_url(dsn)
        is_memory = url.database in (None, "", ":memory:")

        engine_kwargs: Dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if is_memory:
            engine_kwargs["poolclass"] = StaticPool
        else:
            path = Path(url.database).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            url = url.set(database=str(path))
        self.engine = create_engine(url, **engine_kwargs)
        Base.metadata.create_all(self.engine)

        if not is_memory:
            with self.engine.connect() as conn:
                conn.exec_driver_sql("PRAGMA journal_mode=WAL")

        self.SessionLocal = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)
        logger.info(f"SQLite memory store ready at {url.database or ':memory:'}")

    async def _run(self, op: str, fn: Callable[[OrmSession], T]) -> T:
        def _work() -> T:
            with self.SessionLocal() as db:
                return fn(db)

        try:
            return await asyncio.to_thread(_work)
        except SQLAlchemyError as e:
            logger.exception(f"Store operation {op} failed: {e}")
            raise StoreError(f"{op} failed: {e}") from e

    # --- Preferences ---

    async def get_preferences(self, user_id: str) -> UserPreferences:
        def _get(db: OrmSession) -> Dict[str, Any]:
            rows = db.scalars(select(PreferenceDB).where(PreferenceDB.user_id == user_id)).all()
            return {row.key: json.loads(row.value) for row in rows}

        return await self._run("get_preferences", _get)  # type: ignore[return-value]

    async def set_preference(self, user_id: str, key: str, value: Any) -> None:
        encoded = json.dumps(value)

        def _set(db: OrmSession) -> None:
            row = db.get(PreferenceDB, (user_id, key))
            if row is None:
                db.add(PreferenceDB(user_id=user_id, key=key, value=encoded))
            else:
                row.value = encoded
            db.commit()

        await self._run("set_preference", _set)

    # --- History ---

    async def get_history(self, user_id: str) -> List[ConversationEntry]:
        def _get(db: OrmSession) -> List[ConversationEntry]:
            rows = db.scalars(
                select(HistoryDB).where(HistoryDB.user_id == user_id).order_by(HistoryDB.id)
            ).all()
            return [row.to_entry() for row in rows]

        return await self._run("get_history", _get)

    async def append_history(self, user_id: str, role: str, content: str) -> ConversationEntry:
        def _append(db: OrmSession) -> ConversationEntry:
            last: Optional[float] = db.scalar(
                select(func.max(HistoryDB.timestamp)).where(HistoryDB.user_id == user_id)
            )
            ts = max(time.time(), last or 0.0)
            row = HistoryDB(user_id=user_id, role=role, content=content, timestamp=ts)
            db.add(row)
            db.commit()
            return row.to_entry()

        return await self._run("append_history", _append)

    async def clear_history(self, user_id: str) -> None:
        def _clear(db: OrmSession) -> None:
            db.query(HistoryDB).filter(HistoryDB.user_id == user_id).delete()
            db.commit()

        await self._run("clear_history", _clear)

    async def list_user_ids(self) -> List[str]:
        def _list(db: OrmSession) -> List[str]:
            ids = union(select(HistoryDB.user_id), select(PreferenceDB.user_id))
            return sorted(db.scalars(ids).all())

        return await self._run("list_user_ids", _list)

    async def close(self) -> None:
        self.engine.dispose()
