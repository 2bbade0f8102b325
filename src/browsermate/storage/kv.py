"""Key-value persistence backends.

Values are JSON-compatible Python objects. The in-memory store is used for
tests and ephemeral runs; the SQL store keeps everything in one SQLAlchemy
table (see `models.KeyValueEntry`).
"""

from __future__ import annotations

import asyncio
import copy
import json
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from sqlalchemy import delete
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from browsermate.config import StorageConfig
from browsermate.exceptions import StorageError

from .database import get_engine, init_db, make_session_factory, session_scope
from .models import KeyValueEntry


class KeyValueStore(ABC):
    """Abstract async key-value store."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when the key is absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store `value` under `key`, replacing any previous value."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove `key`; no-op when absent."""

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key."""
        raise NotImplementedError


class MemoryKeyValueStore(KeyValueStore):
    """Dict-backed store. Values are deep-copied so callers never share state."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()

    def keys(self) -> list[str]:
        return list(self._data)


class SqlKeyValueStore(KeyValueStore):
    """SQLAlchemy-backed store; blocking calls run in a worker thread."""

    def __init__(self, engine: Engine) -> None:
        init_db(engine)
        self._factory = make_session_factory(engine)

    @classmethod
    def from_url(cls, url: str) -> SqlKeyValueStore:
        return cls(get_engine(url))

    def _get(self, key: str) -> Optional[Any]:
        with session_scope(self._factory) as session:
            row = session.get(KeyValueEntry, key)
            return json.loads(row.value) if row is not None else None

    def _set(self, key: str, value: Any) -> None:
        encoded = json.dumps(value, ensure_ascii=False)
        with session_scope(self._factory) as session:
            row = session.get(KeyValueEntry, key)
            if row is None:
                session.add(KeyValueEntry(key=key, value=encoded))
            else:
                row.value = encoded

    def _delete(self, key: Optional[str]) -> None:
        stmt = delete(KeyValueEntry)
        if key is not None:
            stmt = stmt.where(KeyValueEntry.key == key)
        with session_scope(self._factory) as session:
            session.execute(stmt)

    async def get(self, key: str) -> Optional[Any]:
        try:
            return await asyncio.to_thread(self._get, key)
        except (SQLAlchemyError, ValueError) as exc:
            raise StorageError(f"Failed to read {key!r}: {exc}") from exc

    async def set(self, key: str, value: Any) -> None:
        try:
            await asyncio.to_thread(self._set, key, value)
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            raise StorageError(f"Failed to write {key!r}: {exc}") from exc

    async def delete(self, key: str) -> None:
        try:
            await asyncio.to_thread(self._delete, key)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to delete {key!r}: {exc}") from exc

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self._delete, None)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to clear storage: {exc}") from exc


def build_store(cfg: StorageConfig) -> KeyValueStore:
    """Create the key-value store selected by configuration."""
    if cfg.backend == "memory":
        return MemoryKeyValueStore()
    return SqlKeyValueStore.from_url(cfg.url)
