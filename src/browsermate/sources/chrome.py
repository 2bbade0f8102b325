"""Providers reading a local Chrome profile.

Chrome keeps bookmarks in a JSON file named `Bookmarks` and history in an
SQLite database named `History`, both inside the profile directory. Times in
both are WebKit timestamps: microseconds since 1601-01-01 UTC.

The reading list has no stable on-disk format, so it is read from a JSON
export (a list of reading-list records, or an object with a `readingList` key).
"""

from __future__ import annotations

import asyncio
import json
import logging
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from browsermate.config import ChromeConfig
from browsermate.documents.models import BookmarkNode, HistoryRecord, ReadingListRecord
from browsermate.exceptions import SourceFetchError
from browsermate.storage.database import get_engine, sqlite_url

from .base import (
    BookmarkProvider,
    HistoryProvider,
    ReadingListProvider,
    SourceProviders,
)

logger = logging.getLogger(__name__)

# Milliseconds between 1601-01-01 and 1970-01-01
WEBKIT_EPOCH_OFFSET_MS = 11_644_473_600_000

_HISTORY_QUERY = text(
    """
    SELECT id, url, title, last_visit_time, visit_count, typed_count
    FROM urls
    WHERE last_visit_time >= :start AND hidden = 0
    ORDER BY last_visit_time DESC
    LIMIT :limit
    """
)


def webkit_to_epoch_ms(value: Union[str, int, None]) -> Optional[float]:
    """Convert a WebKit timestamp; zero or missing means unknown."""
    if value in (None, "", 0, "0"):
        return None
    return int(value) / 1000 - WEBKIT_EPOCH_OFFSET_MS


def epoch_ms_to_webkit(value: int) -> int:
    return (int(value) + WEBKIT_EPOCH_OFFSET_MS) * 1000


def _path(value: Union[str, Path]) -> Path:
    return Path(value).expanduser()


class ChromeBookmarksProvider(BookmarkProvider):
    """Reads the profile's `Bookmarks` file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = _path(path)

    async def fetch(self) -> List[BookmarkNode]:
        return await asyncio.to_thread(self._read)

    def _read(self) -> List[BookmarkNode]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SourceFetchError("bookmarks", f"cannot read {self._path}: {exc}") from exc
        roots = data.get("roots") if isinstance(data, dict) else None
        if not isinstance(roots, dict):
            raise SourceFetchError("bookmarks", f"{self._path} has no bookmark roots")

        nodes: List[BookmarkNode] = []
        for position, root in enumerate(r for r in roots.values() if isinstance(r, dict)):
            try:
                nodes.append(BookmarkNode.model_validate(self._convert(root, None, position)))
            except ValidationError as exc:
                logger.warning("Skipping malformed bookmark root: %s", exc.errors()[:1])
        return nodes

    def _convert(self, node: Dict[str, Any], parent_id: Optional[str], index: int) -> Dict[str, Any]:
        node_id = str(node.get("id", ""))
        children = node.get("children") if isinstance(node.get("children"), list) else []
        name, url = node.get("name"), node.get("url")
        try:
            added = webkit_to_epoch_ms(node.get("date_added"))
        except (TypeError, ValueError):
            logger.warning("Bookmark %s has unreadable date_added %r", node_id, node.get("date_added"))
            added = None
        return {
            "id": node_id,
            "title": name if isinstance(name, str) else None,
            "url": url if node.get("type") == "url" and isinstance(url, str) else None,
            "dateAdded": added,
            "parentId": parent_id,
            "index": index,
            "children": [
                self._convert(child, node_id, i)
                for i, child in enumerate(children)
                if isinstance(child, dict)
            ],
        }


class ChromeHistoryProvider(HistoryProvider):
    """Queries the profile's `History` database.

    Chrome holds a lock on the live database, so a copy is queried instead.
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = _path(path)

    async def fetch(self, *, start_time: int, max_results: int) -> List[HistoryRecord]:
        return await asyncio.to_thread(self._read, start_time, max_results)

    def _read(self, start_time: int, max_results: int) -> List[HistoryRecord]:
        if not self._path.is_file():
            raise SourceFetchError("history", f"{self._path} does not exist")
        try:
            with tempfile.TemporaryDirectory(prefix="browsermate-") as tmp:
                snapshot = Path(tmp) / "History"
                shutil.copyfile(self._path, snapshot)
                engine = get_engine(sqlite_url(snapshot))
                try:
                    with engine.connect() as conn:
                        rows = conn.execute(
                            _HISTORY_QUERY,
                            {"start": epoch_ms_to_webkit(start_time), "limit": int(max_results)},
                        ).mappings().all()
                finally:
                    engine.dispose()
        except (OSError, SQLAlchemyError) as exc:
            raise SourceFetchError("history", f"cannot query {self._path}: {exc}") from exc

        records: List[HistoryRecord] = []
        for row in rows:
            try:
                records.append(
                    HistoryRecord.model_validate(
                        {
                            "id": str(row["id"]),
                            "url": row["url"],
                            "title": row["title"],
                            "lastVisitTime": webkit_to_epoch_ms(row["last_visit_time"]),
                            "visitCount": row["visit_count"],
                            "typedCount": row["typed_count"],
                        }
                    )
                )
            except ValidationError as exc:
                logger.warning("Skipping malformed history row: %s", exc.errors()[:1])
        return records


class JsonReadingListProvider(ReadingListProvider):
    """Reads reading-list entries from a JSON export."""

    def __init__(self, path: Union[str, Path]) -> None:
        self._path = _path(path)

    async def fetch(self) -> List[ReadingListRecord]:
        return await asyncio.to_thread(self._read)

    def _read(self) -> List[ReadingListRecord]:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise SourceFetchError("reading-list", f"cannot read {self._path}: {exc}") from exc
        if isinstance(data, dict):
            data = data.get("readingList")
        if not isinstance(data, list):
            raise SourceFetchError("reading-list", f"{self._path} holds no reading-list entries")

        records: List[ReadingListRecord] = []
        for raw in data:
            try:
                records.append(ReadingListRecord.model_validate(raw))
            except ValidationError as exc:
                logger.warning("Skipping malformed reading-list entry: %s", exc.errors()[:1])
        return records


def chrome_providers(cfg: ChromeConfig) -> SourceProviders:
    """Build providers for whatever the configuration points at."""
    providers = SourceProviders()
    if cfg.profile_dir:
        profile = _path(cfg.profile_dir)
        providers.bookmarks = ChromeBookmarksProvider(profile / "Bookmarks")
        providers.history = ChromeHistoryProvider(profile / "History")
    if cfg.reading_list_path:
        providers.reading_list = JsonReadingListProvider(cfg.reading_list_path)
    return providers
