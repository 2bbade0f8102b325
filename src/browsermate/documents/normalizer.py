"""Conversion of raw browser collections into `IndexedItem` documents.

Every function here is pure apart from logging the records it has to skip.
Inputs may be plain mappings (as read back from storage) or already validated
models; a record that fails validation is dropped without aborting the batch.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, ValidationError

from browsermate.documents.models import (
    BookmarkNode,
    HistoryRecord,
    IndexedItem,
    ReadingListRecord,
)

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
UNTITLED = "Untitled"

Clock = Callable[[], float]
M = TypeVar("M", bound=BaseModel)
RawRecord = Union[Mapping[str, Any], BaseModel]


def now_millis() -> int:
    return int(time.time() * 1000)


def make_snippet(content: str, max_length: int = SNIPPET_LENGTH) -> str:
    """Truncate `content` to `max_length` chars, marking the cut with '...'."""
    if len(content) <= max_length:
        return content
    return content[:max_length].strip() + "..."


def _coerce(model: Type[M], raw: RawRecord, source: str) -> Optional[M]:
    if isinstance(raw, model):
        return raw
    try:
        if isinstance(raw, BaseModel):
            raw = raw.model_dump(by_alias=True)
        return model.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Skipping malformed %s record: %s", source, exc.errors()[:1])
        return None


def _content(title: Optional[str], url: str) -> str:
    return f"{title or ''} {url}".strip()


def _timestamp(value: Optional[float], clock: Clock) -> int:
    if value is None:
        return int(clock())
    return int(value)


def _build(
    *, item_id: str, title: Optional[str], url: str, kind: str, timestamp: int
) -> IndexedItem:
    content = _content(title, url)
    return IndexedItem(
        id=item_id,
        title=title or UNTITLED,
        url=url,
        content=content,
        type=kind,  # type: ignore[arg-type]
        timestamp=timestamp,
        snippet=make_snippet(content),
    )


def _split_node(raw: RawRecord) -> Tuple[RawRecord, List[RawRecord]]:
    """Detach a bookmark node from its children so each one validates alone."""
    if isinstance(raw, BookmarkNode):
        return raw, list(raw.children)
    if isinstance(raw, BaseModel):
        raw = raw.model_dump(by_alias=True)
    if not isinstance(raw, Mapping):
        return raw, []
    children = raw.get("children")
    if children is None:
        return raw, []
    if not isinstance(children, (list, tuple)):
        # left in place so validation rejects the node
        return raw, []
    return {k: v for k, v in raw.items() if k != "children"}, list(children)


def normalize_bookmarks(
    tree: Iterable[RawRecord], *, clock: Clock = now_millis
) -> List[IndexedItem]:
    """Walk a bookmark tree; only nodes with a URL become documents.

    A malformed node is skipped on its own; its siblings and children are
    still visited.
    """
    items: List[IndexedItem] = []

    def visit(raw: RawRecord) -> None:
        fields, children = _split_node(raw)
        node = _coerce(BookmarkNode, fields, "bookmark")
        if node is not None and node.url:
            items.append(
                _build(
                    item_id=f"bookmark_{node.id}",
                    title=node.title,
                    url=node.url,
                    kind="bookmark",
                    timestamp=_timestamp(node.date_added, clock),
                )
            )
        for child in children:
            visit(child)

    for raw in tree:
        visit(raw)
    return items


def normalize_history(
    records: Iterable[RawRecord], *, clock: Clock = now_millis
) -> List[IndexedItem]:
    """Convert history records; entries without both url and title are dropped."""
    items: List[IndexedItem] = []
    for raw in records:
        rec = _coerce(HistoryRecord, raw, "history")
        if rec is None or not rec.url or not rec.title:
            continue
        items.append(
            _build(
                item_id=f"history_{rec.id}",
                title=rec.title,
                url=rec.url,
                kind="history",
                timestamp=_timestamp(rec.last_visit_time, clock),
            )
        )
    return items


def normalize_reading_list(
    records: Iterable[RawRecord], *, clock: Clock = now_millis
) -> List[IndexedItem]:
    """Convert reading-list entries; identity is the URL, not a native id."""
    items: List[IndexedItem] = []
    for raw in records:
        rec = _coerce(ReadingListRecord, raw, "reading-list")
        if rec is None:
            continue
        items.append(
            _build(
                item_id=f"reading_{rec.url}",
                title=rec.title,
                url=rec.url,
                kind="reading-list",
                timestamp=_timestamp(rec.creation_time, clock),
            )
        )
    return items


def normalize_all(
    bookmarks: Iterable[RawRecord],
    history: Iterable[RawRecord],
    reading_list: Iterable[RawRecord],
    *,
    clock: Clock = now_millis,
) -> List[IndexedItem]:
    """Normalize the three source collections into one flat document list."""
    return [
        *normalize_bookmarks(bookmarks, clock=clock),
        *normalize_history(history, clock=clock),
        *normalize_reading_list(reading_list, clock=clock),
    ]
