import asyncio
from typing import Any, Optional

import pytest

from browsermate.config import StorageConfig
from browsermate.documents.models import IndexedItem
from browsermate.exceptions import PersistenceError, StorageError
from browsermate.storage.database import get_engine
from browsermate.storage.kv import MemoryKeyValueStore, SqlKeyValueStore, build_store
from browsermate.storage.repository import STORAGE_KEYS, BrowserDataRepository

# ---------- Helpers ----------


class BrokenStore(MemoryKeyValueStore):
    async def get(self, key: str) -> Optional[Any]:
        raise StorageError("disk on fire")

    async def set(self, key: str, value: Any) -> None:
        raise StorageError("disk full")

    async def clear(self) -> None:
        raise StorageError("read-only")


class SlowStore(MemoryKeyValueStore):
    async def get(self, key: str) -> Optional[Any]:
        await asyncio.sleep(0.5)
        return await super().get(key)


# ---------- Key-value stores ----------


@pytest.mark.asyncio
async def test_memory_store_copies_values() -> None:
    store = MemoryKeyValueStore()
    value = {"a": [1, 2]}
    await store.set("k", value)
    value["a"].append(3)
    assert await store.get("k") == {"a": [1, 2]}
    await store.delete("k")
    await store.delete("k")
    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_sql_store_in_memory_sqlite() -> None:
    store = SqlKeyValueStore.from_url("sqlite+pysqlite:///:memory:")
    await store.set("greeting", {"text": "你好", "n": 1})
    await store.set("greeting", {"text": "hello", "n": 2})
    await store.set("other", [1, 2, 3])
    assert await store.get("greeting") == {"text": "hello", "n": 2}
    await store.delete("other")
    assert await store.get("other") is None
    await store.clear()
    assert await store.get("greeting") is None


@pytest.mark.asyncio
async def test_sql_store_survives_reopen(tmp_path) -> None:
    url = f"sqlite+pysqlite:///{tmp_path / 'state.db'}"
    await SqlKeyValueStore.from_url(url).set("k", "v")
    assert await SqlKeyValueStore.from_url(url).get("k") == "v"


@pytest.mark.asyncio
async def test_sql_store_wraps_unserializable_values() -> None:
    store = SqlKeyValueStore.from_url("sqlite+pysqlite:///:memory:")
    with pytest.raises(StorageError):
        await store.set("k", object())


def test_build_store_selects_backend() -> None:
    assert isinstance(build_store(StorageConfig(backend="memory")), MemoryKeyValueStore)
    sql = build_store(StorageConfig(backend="sql", url="sqlite+pysqlite:///:memory:"))
    assert isinstance(sql, SqlKeyValueStore)


def test_get_engine_urls() -> None:
    engine = get_engine("postgresql://user:pw@localhost/browsermate")
    assert engine.url.drivername == "postgresql+psycopg"
    with pytest.raises(ValueError):
        get_engine("mysql://user:pw@localhost/db")


# ---------- Repository ----------


@pytest.mark.asyncio
async def test_repository_round_trips_collections() -> None:
    store = MemoryKeyValueStore()
    repo = BrowserDataRepository(store)
    await repo.set_bookmarks([{"id": "1"}])
    await repo.set_last_sync_time(123)
    await repo.set_search_index("blob")
    item = IndexedItem(id="x", title="X", url="https://x", content="X https://x", type="history", timestamp=1)
    await repo.set_indexed_items([item])

    assert await repo.get_bookmarks() == [{"id": "1"}]
    assert await repo.get_history() == []
    assert await repo.get_last_sync_time() == 123
    assert await repo.get_search_index() == "blob"
    assert await repo.get_indexed_items() == [item]
    assert await store.get(STORAGE_KEYS["bookmarks"]) == [{"id": "1"}]

    await repo.clear()
    assert store.keys() == []


@pytest.mark.asyncio
async def test_repository_reads_fall_back_to_defaults() -> None:
    store = MemoryKeyValueStore(
        {
            STORAGE_KEYS["history"]: "not a list",
            STORAGE_KEYS["indexed_items"]: [{"id": "ok", "title": "t", "url": "", "content": "t", "type": "bookmark", "timestamp": 1}, {"id": ""}],
            STORAGE_KEYS["search_index"]: 42,
        }
    )
    repo = BrowserDataRepository(store)
    assert await repo.get_history() == []
    assert [i.id for i in await repo.get_indexed_items()] == ["ok"]
    assert await repo.get_search_index() is None
    assert await BrowserDataRepository(BrokenStore()).get_bookmarks() == []


@pytest.mark.asyncio
async def test_repository_read_timeout() -> None:
    store = SlowStore({STORAGE_KEYS["last_sync_time"]: 99})
    repo = BrowserDataRepository(store, read_timeout=0.01)
    assert await repo.get_last_sync_time() == 0


@pytest.mark.asyncio
async def test_repository_write_failures_raise_persistence_error() -> None:
    repo = BrowserDataRepository(BrokenStore())
    with pytest.raises(PersistenceError):
        await repo.set_history([])
    with pytest.raises(PersistenceError):
        await repo.clear()
