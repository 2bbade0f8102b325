"""Base interfaces for raw browser-data providers.

A provider hands out one source collection (bookmark tree, history range,
reading list). Implementations should be safe to construct without side
effects and must not touch the browser profile until `fetch` is awaited.
Failures are reported as `SourceFetchError`; the engine treats them as an
empty collection.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from browsermate.documents.models import BookmarkNode, HistoryRecord, ReadingListRecord


class BookmarkProvider(ABC):
    """Provides the bookmark tree (folders included)."""

    @abstractmethod
    async def fetch(self) -> List[BookmarkNode]:
        """Return the root nodes of the bookmark tree."""
        raise NotImplementedError


class HistoryProvider(ABC):
    """Provides history entries visited since a point in time."""

    @abstractmethod
    async def fetch(self, *, start_time: int, max_results: int) -> List[HistoryRecord]:
        """Return at most `max_results` entries visited at or after `start_time` (epoch ms)."""
        raise NotImplementedError


class ReadingListProvider(ABC):
    """Provides reading-list entries."""

    @abstractmethod
    async def fetch(self) -> List[ReadingListRecord]:
        """Return every reading-list entry."""
        raise NotImplementedError


@dataclass(slots=True)
class SourceProviders:
    """The providers an engine syncs from; a missing one contributes nothing."""

    bookmarks: Optional[BookmarkProvider] = None
    history: Optional[HistoryProvider] = None
    reading_list: Optional[ReadingListProvider] = None
