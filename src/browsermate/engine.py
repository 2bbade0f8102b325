"""The retrieval engine: the one object consumers talk to.

Wires the document normalizer, the index store and the query engine to the
persisted raw collections and to the source providers. Construct one per
process and pass it by reference; nothing here is a module-level singleton.

Error policy: provider failures, corrupt persisted state and failed
write-backs are logged and absorbed. Callers only ever see reduced
functionality (fewer or stale results), or `ValueError` for invalid arguments.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from browsermate.config import Settings
from browsermate.documents.models import IndexedItem, SearchResult
from browsermate.documents.normalizer import Clock, normalize_all, now_millis
from browsermate.exceptions import PersistenceError, SourceFetchError
from browsermate.search.index_store import IndexStore
from browsermate.search.query import QueryEngine
from browsermate.sources.base import SourceProviders
from browsermate.storage.kv import KeyValueStore, build_store
from browsermate.storage.repository import BrowserDataRepository

logger = logging.getLogger(__name__)

DAY_MS = 24 * 60 * 60 * 1000


@dataclass(slots=True)
class SyncResult:
    success: bool
    items_count: int
    last_sync_time: int


@dataclass(slots=True)
class IndexStats:
    document_count: int
    serialized_index_byte_size: int


class RetrievalEngine:
    """Search over bookmarks, history and reading list."""

    def __init__(
        self,
        repository: BrowserDataRepository,
        *,
        providers: Optional[SourceProviders] = None,
        history_days: int = 7,
        history_max_results: int = 1000,
        clock: Clock = now_millis,
    ) -> None:
        self._repository = repository
        self._providers = providers or SourceProviders()
        self._history_days = history_days
        self._history_max_results = history_max_results
        self._clock = clock
        self._store = IndexStore(repository)
        self._query = QueryEngine(self._store, clock=clock)
        self._write_lock = asyncio.Lock()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        providers: Optional[SourceProviders] = None,
        store: Optional[KeyValueStore] = None,
    ) -> RetrievalEngine:
        repository = BrowserDataRepository(
            store or build_store(settings.storage),
            read_timeout=settings.storage.read_timeout,
        )
        return cls(
            repository,
            providers=providers,
            history_days=settings.sync.history_days,
            history_max_results=settings.sync.history_max_results,
        )

    @property
    def index(self) -> IndexStore:
        return self._store

    @property
    def query_engine(self) -> QueryEngine:
        return self._query

    # ----- indexing -----

    async def _reindex(
        self,
        bookmarks: List[Any],
        history: List[Any],
        reading_list: List[Any],
    ) -> int:
        items = normalize_all(bookmarks, history, reading_list, clock=self._clock)
        counts: Dict[str, int] = {}
        for item in items:
            counts[item.type] = counts.get(item.type, 0) + 1
        logger.info("Rebuilding index with %d documents %s", len(items), counts)
        indexed = self._store.rebuild(items)
        await self._store.persist()
        return indexed

    async def rebuild(self) -> int:
        """Full reindex from the persisted raw collections; returns the document count."""
        await self._store.ensure_ready()
        async with self._write_lock:
            bookmarks, history, reading_list = await asyncio.gather(
                self._repository.get_bookmarks(),
                self._repository.get_history(),
                self._repository.get_reading_list(),
            )
            return await self._reindex(bookmarks, history, reading_list)

    async def _fetch(self, source: str, fetch: Callable[[], Awaitable[List[Any]]]) -> Optional[List[Any]]:
        try:
            return await fetch()
        except SourceFetchError as exc:
            logger.warning("Source fetch failed, treating as empty: %s", exc)
        except Exception:
            logger.exception("Source %s failed unexpectedly, treating as empty", source)
        return None

    async def sync(self) -> SyncResult:
        """Fetch every source, store the raw collections and rebuild the index."""
        await self._store.ensure_ready()
        providers = self._providers
        history_provider = providers.history
        start_time = int(self._clock()) - self._history_days * DAY_MS

        async def none() -> List[Any]:
            return []

        async def history() -> List[Any]:
            return await history_provider.fetch(
                start_time=start_time, max_results=self._history_max_results
            )

        fetched = await asyncio.gather(
            self._fetch("bookmarks", providers.bookmarks.fetch if providers.bookmarks else none),
            self._fetch("history", history if history_provider else none),
            self._fetch(
                "reading-list", providers.reading_list.fetch if providers.reading_list else none
            ),
        )
        configured = [providers.bookmarks, providers.history, providers.reading_list]
        attempted = [f for f, p in zip(fetched, configured) if p is not None]
        success = not attempted or any(f is not None for f in attempted)

        bookmarks, history_records, reading_list = (
            [r.model_dump(by_alias=True) for r in (f or [])] for f in fetched
        )
        logger.info(
            "Fetched %d bookmark roots, %d history entries, %d reading-list entries",
            len(bookmarks),
            len(history_records),
            len(reading_list),
        )

        async with self._write_lock:
            try:
                await self._repository.set_bookmarks(bookmarks)
                await self._repository.set_history(history_records)
                await self._repository.set_reading_list(reading_list)
            except PersistenceError as exc:
                logger.warning("Could not store raw collections: %s", exc)
            count = await self._reindex(bookmarks, history_records, reading_list)

        synced_at = int(self._clock())
        try:
            await self._repository.set_last_sync_time(synced_at)
        except PersistenceError as exc:
            logger.warning("Could not store last sync time: %s", exc)
        logger.info("Sync complete: %d documents indexed", count)
        return SyncResult(success=success, items_count=count, last_sync_time=synced_at)

    # ----- queries -----

    async def search(self, query: str, limit: int = 20) -> List[SearchResult]:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if not query or not query.strip():
            return []
        await self._store.ensure_ready()
        return self._query.search(query, limit)

    async def get_stats(self) -> IndexStats:
        await self._store.ensure_ready()
        blob = await self._repository.get_search_index()
        return IndexStats(
            document_count=self._store.document_count,
            serialized_index_byte_size=len(blob.encode("utf-8")) if blob else 0,
        )

    async def last_sync_time(self) -> int:
        return await self._repository.get_last_sync_time()

    # ----- incremental maintenance -----

    async def add_item(self, item: IndexedItem) -> None:
        await self._store.ensure_ready()
        async with self._write_lock:
            self._store.add(item)
            await self._store.persist()

    async def remove_item(self, item_id: str) -> None:
        await self._store.ensure_ready()
        async with self._write_lock:
            self._store.remove(item_id)
            await self._store.persist()

    async def update_item(self, item: IndexedItem) -> None:
        """Full replacement: remove then add under the same id."""
        await self._store.ensure_ready()
        async with self._write_lock:
            self._store.remove(item.id)
            self._store.add(item)
            await self._store.persist()

    async def clear(self) -> None:
        """Reset to an empty index and wipe every persisted artifact."""
        await self._store.ensure_ready()
        async with self._write_lock:
            self._store.clear()
            try:
                await self._repository.clear()
            except PersistenceError as exc:
                logger.warning("Could not wipe persisted data: %s", exc)
        logger.info("Search index cleared")

    # ----- serialization -----

    async def export_index(self) -> Optional[str]:
        await self._store.ensure_ready()
        return self._store.export()

    async def import_index(self, blob: str) -> bool:
        """Replace the index with an exported one; False (and empty) on failure."""
        await self._store.ensure_ready()
        async with self._write_lock:
            restored = self._store.import_index(blob)
            await self._store.persist()
        return restored
