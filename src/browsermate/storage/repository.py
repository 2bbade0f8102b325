"""Typed access to everything BrowserMate persists.

Reads never block for long and never fail: a slow or broken store yields the
default value. Writes raise `PersistenceError` so the caller decides whether
the failure matters.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from browsermate.documents.models import IndexedItem
from browsermate.exceptions import PersistenceError

from .kv import KeyValueStore

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "bookmarks": "browsermate_bookmarks",
    "history": "browsermate_history",
    "reading_list": "browsermate_reading_list",
    "indexed_items": "browsermate_indexed_items",
    "search_index": "browsermate_search_index",
    "last_sync_time": "browsermate_last_sync_time",
}

DEFAULT_READ_TIMEOUT = 2.0


class BrowserDataRepository:
    """Raw collections, indexed documents and the serialized index."""

    def __init__(self, store: KeyValueStore, *, read_timeout: float = DEFAULT_READ_TIMEOUT) -> None:
        self._store = store
        self._read_timeout = read_timeout

    async def _get(self, key: str, default: Any) -> Any:
        try:
            value = await asyncio.wait_for(self._store.get(key), timeout=self._read_timeout)
        except asyncio.TimeoutError:
            logger.warning("Storage read of %s timed out after %.1fs, using default", key, self._read_timeout)
            return default
        except Exception as exc:
            logger.warning("Storage read of %s failed, using default: %s", key, exc)
            return default
        return default if value is None else value

    async def _get_list(self, key: str) -> List[Any]:
        value = await self._get(key, [])
        if not isinstance(value, list):
            logger.warning("Ignoring non-list value stored under %s", key)
            return []
        return value

    async def _set(self, key: str, value: Any) -> None:
        try:
            await self._store.set(key, value)
        except Exception as exc:
            raise PersistenceError(f"Failed to persist {key}: {exc}") from exc

    # Raw collections

    async def get_bookmarks(self) -> List[Dict[str, Any]]:
        return await self._get_list(STORAGE_KEYS["bookmarks"])

    async def set_bookmarks(self, bookmarks: List[Dict[str, Any]]) -> None:
        await self._set(STORAGE_KEYS["bookmarks"], bookmarks)

    async def get_history(self) -> List[Dict[str, Any]]:
        return await self._get_list(STORAGE_KEYS["history"])

    async def set_history(self, history: List[Dict[str, Any]]) -> None:
        await self._set(STORAGE_KEYS["history"], history)

    async def get_reading_list(self) -> List[Dict[str, Any]]:
        return await self._get_list(STORAGE_KEYS["reading_list"])

    async def set_reading_list(self, reading_list: List[Dict[str, Any]]) -> None:
        await self._set(STORAGE_KEYS["reading_list"], reading_list)

    # Derived state

    async def get_indexed_items(self) -> List[IndexedItem]:
        items: List[IndexedItem] = []
        for raw in await self._get_list(STORAGE_KEYS["indexed_items"]):
            try:
                items.append(IndexedItem.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Dropping malformed persisted item: %s", exc.errors()[:1])
        return items

    async def set_indexed_items(self, items: Iterable[IndexedItem]) -> None:
        await self._set(STORAGE_KEYS["indexed_items"], [i.model_dump() for i in items])

    async def get_search_index(self) -> Optional[str]:
        value = await self._get(STORAGE_KEYS["search_index"], None)
        if value is not None and not isinstance(value, str):
            logger.warning("Ignoring non-string serialized index")
            return None
        return value or None

    async def set_search_index(self, serialized: str) -> None:
        await self._set(STORAGE_KEYS["search_index"], serialized)

    async def get_last_sync_time(self) -> int:
        value = await self._get(STORAGE_KEYS["last_sync_time"], 0)
        return value if isinstance(value, int) else 0

    async def set_last_sync_time(self, timestamp: int) -> None:
        await self._set(STORAGE_KEYS["last_sync_time"], int(timestamp))

    async def clear(self) -> None:
        """Wipe every persisted artifact."""
        try:
            await self._store.clear()
        except Exception as exc:
            raise PersistenceError(f"Failed to clear storage: {exc}") from exc
