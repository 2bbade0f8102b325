"""Owner of the text index and the authoritative document map.

The index and the map always travel together as one `IndexSnapshot`. Rebuilds
and imports construct a new snapshot off to the side and swap a single
reference, so a reader holding a snapshot sees either the old or the new state
in full. Incremental `add`/`remove` mutate the active snapshot in place under a
lock: readers get last-writer-wins semantics without isolation.

Initialization is lazy and single-flight: the first `ensure_ready()` loads the
persisted documents (and, when it matches them, the persisted serialized
index); concurrent callers wait for that one load. A failed load still ends in
READY with an empty index.
"""

from __future__ import annotations

import asyncio
import enum
import json
import logging
import threading
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from browsermate.documents.models import IndexedItem
from browsermate.exceptions import IndexCorruptionError, PersistenceError
from browsermate.search.base_search import TextIndex
from browsermate.search.text_index import WhooshTextIndex
from browsermate.storage.repository import BrowserDataRepository

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT = 1

IndexFactory = Callable[[], TextIndex]
IndexLoader = Callable[[str], TextIndex]


class IndexState(str, enum.Enum):
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"


class IndexSnapshot:
    """A text index paired with the documents it covers."""

    __slots__ = ("index", "_items")

    def __init__(self, index: TextIndex, items: Dict[str, IndexedItem]) -> None:
        self.index = index
        self._items = items

    def search_term(self, term: str, limit: int) -> List[str]:
        return self.index.search_prefix(term, limit=limit)

    def get(self, item_id: str) -> Optional[IndexedItem]:
        return self._items.get(item_id)

    def items(self) -> List[IndexedItem]:
        return list(self._items.values())

    def put(self, item: IndexedItem) -> None:
        self.index.add(item.id, item.content)
        self._items[item.id] = item

    def discard(self, item_id: str) -> None:
        self.index.remove(item_id)
        self._items.pop(item_id, None)

    def __len__(self) -> int:
        return len(self._items)


class IndexStore:
    """Text index + document map with add/remove/rebuild/export/import."""

    def __init__(
        self,
        repository: Optional[BrowserDataRepository] = None,
        *,
        index_factory: IndexFactory = WhooshTextIndex,
        index_loader: IndexLoader = WhooshTextIndex.from_export,
    ) -> None:
        self._repository = repository
        self._index_factory = index_factory
        self._index_loader = index_loader
        self._snapshot = IndexSnapshot(index_factory(), {})
        self._state = IndexState.UNINITIALIZED
        self._init_lock = asyncio.Lock()
        self._mutex = threading.RLock()
        self._generation = 0

    @property
    def state(self) -> IndexState:
        return self._state

    @property
    def document_count(self) -> int:
        return len(self._snapshot)

    def view(self) -> IndexSnapshot:
        """Return the active snapshot; hold on to it for a consistent read."""
        return self._snapshot

    def get(self, item_id: str) -> Optional[IndexedItem]:
        return self._snapshot.get(item_id)

    # ----- lifecycle -----

    async def ensure_ready(self) -> None:
        if self._state is IndexState.READY:
            return
        async with self._init_lock:
            if self._state is IndexState.READY:
                return
            self._state = IndexState.INITIALIZING
            logger.info("Index store: starting initialization")
            try:
                await self._load()
            except Exception:
                logger.exception("Index store: initialization failed, starting empty")
                self._swap(self._empty())
            finally:
                self._state = IndexState.READY
            logger.info("Index store: ready with %d documents", self.document_count)

    async def _load(self) -> None:
        if self._repository is None:
            return
        generation = self._generation
        items = await self._repository.get_indexed_items()
        if not items:
            logger.info("Index store: no persisted documents, waiting for a rebuild")
            return

        snapshot: Optional[IndexSnapshot] = None
        blob = await self._repository.get_search_index()
        if blob:
            try:
                snapshot = self._decode(blob)
                if {i.id for i in snapshot.items()} != {i.id for i in items}:
                    raise IndexCorruptionError("serialized index does not match persisted documents")
            except IndexCorruptionError as exc:
                logger.warning("Index store: discarding serialized index: %s", exc)
                snapshot = None
        if snapshot is None:
            snapshot = self._build(items)
        if generation != self._generation:
            logger.info("Index store: index replaced while loading, keeping the newer one")
            return
        self._swap(snapshot)

    def _empty(self) -> IndexSnapshot:
        return IndexSnapshot(self._index_factory(), {})

    def _swap(self, snapshot: IndexSnapshot) -> None:
        with self._mutex:
            self._snapshot = snapshot
            self._generation += 1

    def _build(self, items: Iterable[Union[IndexedItem, Mapping[str, Any]]]) -> IndexSnapshot:
        docs: Dict[str, IndexedItem] = {}
        for raw in items:
            try:
                item = raw if isinstance(raw, IndexedItem) else IndexedItem.model_validate(raw)
            except ValidationError as exc:
                logger.warning("Index store: skipping malformed item: %s", exc.errors()[:1])
                continue
            docs[item.id] = item
        index = self._index_factory()
        index.add_many((item.id, item.content) for item in docs.values())
        return IndexSnapshot(index, docs)

    # ----- mutations -----

    def add(self, item: IndexedItem) -> None:
        """Insert or overwrite `item`; idempotent per id."""
        if not isinstance(item, IndexedItem):
            raise TypeError(f"expected IndexedItem, got {type(item).__name__}")
        with self._mutex:
            self._snapshot.put(item)

    def remove(self, item_id: str) -> None:
        """Delete the document and its index entries; no-op if absent."""
        with self._mutex:
            self._snapshot.discard(item_id)

    def rebuild(self, items: Iterable[Union[IndexedItem, Mapping[str, Any]]]) -> int:
        """Replace the whole index with one built from `items`."""
        snapshot = self._build(items)
        self._swap(snapshot)
        self._state = IndexState.READY
        logger.info("Index store: rebuilt with %d documents", len(snapshot))
        return len(snapshot)

    def clear(self) -> None:
        self._swap(self._empty())
        self._state = IndexState.READY

    # ----- queries -----

    def search_term(self, term: str, limit: int) -> List[str]:
        """Ids whose content has a token starting with `term`, at most `limit`."""
        return self._snapshot.search_term(term, limit)

    # ----- serialization -----

    def _decode(self, blob: str) -> IndexSnapshot:
        try:
            payload = json.loads(blob)
            if payload.get("format") != SNAPSHOT_FORMAT:
                raise ValueError(f"unsupported snapshot format {payload.get('format')!r}")
            items = [IndexedItem.model_validate(raw) for raw in payload["items"]]
            index = self._index_loader(payload["index"])
        except IndexCorruptionError:
            raise
        except Exception as exc:
            raise IndexCorruptionError(f"cannot decode snapshot: {exc}") from exc
        docs = {item.id: item for item in items}
        if index.doc_ids() != set(docs):
            raise IndexCorruptionError("snapshot index and documents disagree")
        return IndexSnapshot(index, docs)

    def export(self) -> Optional[str]:
        """Serialize the active snapshot into an opaque string.

        Returns None when the index cannot be serialized; the store is then
        reset to empty.
        """
        with self._mutex:
            snapshot = self._snapshot
            try:
                return json.dumps(
                    {
                        "format": SNAPSHOT_FORMAT,
                        "index": snapshot.index.export(),
                        "items": [item.model_dump() for item in snapshot.items()],
                    },
                    ensure_ascii=False,
                )
            except Exception:
                logger.exception("Index store: export failed, resetting to empty")
                self._swap(self._empty())
                self._state = IndexState.READY
                return None

    def import_index(self, blob: str) -> bool:
        """Replace the active snapshot with one decoded from `blob`.

        On failure the store ends READY with an empty index and False is returned.
        """
        try:
            snapshot = self._decode(blob)
        except IndexCorruptionError as exc:
            logger.warning("Index store: import failed, resetting to empty: %s", exc)
            self._swap(self._empty())
            self._state = IndexState.READY
            return False
        self._swap(snapshot)
        self._state = IndexState.READY
        return True

    async def persist(self) -> bool:
        """Write documents and the serialized index back to storage.

        Best-effort: a failed write is logged and reported as False.
        """
        if self._repository is None:
            return True
        blob = self.export()
        items = self._snapshot.items()
        try:
            await self._repository.set_indexed_items(items)
            if blob is not None:
                await self._repository.set_search_index(blob)
        except PersistenceError as exc:
            logger.warning("Index store: persistence failed: %s", exc)
            return False
        return True
