"""In-memory providers over preloaded records."""

from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Union

from browsermate.documents.models import BookmarkNode, HistoryRecord, ReadingListRecord

from .base import BookmarkProvider, HistoryProvider, ReadingListProvider


class StaticBookmarkProvider(BookmarkProvider):
    def __init__(self, tree: Iterable[Union[BookmarkNode, Mapping[str, Any]]]) -> None:
        self._tree = [
            BookmarkNode.model_validate(n) if not isinstance(n, BookmarkNode) else n
            for n in tree
        ]

    async def fetch(self) -> List[BookmarkNode]:
        return list(self._tree)


class StaticHistoryProvider(HistoryProvider):
    """Applies the same window and cap a browser history query would."""

    def __init__(self, records: Iterable[Union[HistoryRecord, Mapping[str, Any]]]) -> None:
        self._records = [
            HistoryRecord.model_validate(r) if not isinstance(r, HistoryRecord) else r
            for r in records
        ]

    async def fetch(self, *, start_time: int, max_results: int) -> List[HistoryRecord]:
        recent = [
            r for r in self._records
            if r.last_visit_time is None or r.last_visit_time >= start_time
        ]
        recent.sort(key=lambda r: r.last_visit_time or 0, reverse=True)
        return recent[:max_results]


class StaticReadingListProvider(ReadingListProvider):
    def __init__(self, records: Iterable[Union[ReadingListRecord, Mapping[str, Any]]]) -> None:
        self._records = [
            ReadingListRecord.model_validate(r) if not isinstance(r, ReadingListRecord) else r
            for r in records
        ]

    async def fetch(self) -> List[ReadingListRecord]:
        return list(self._records)
