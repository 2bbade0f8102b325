"""Data structures for browser-derived records and the canonical document.

Raw records mirror what browsers hand out (camelCase keys, optional fields,
folders mixed with links). `IndexedItem` is the normalized document the search
layer works with; `SearchResult` pairs one with its ranking signals.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

ItemType = Literal["bookmark", "history", "reading-list"]
ITEM_TYPES: tuple[ItemType, ...] = ("bookmark", "history", "reading-list")


class _RawRecord(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


class BookmarkNode(_RawRecord):
    """A node of the bookmark tree; folders carry children but no URL."""

    id: str
    title: Optional[str] = None
    url: Optional[str] = None
    date_added: Optional[float] = Field(default=None, alias="dateAdded")
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    index: Optional[int] = None
    children: List[BookmarkNode] = Field(default_factory=list)


class HistoryRecord(_RawRecord):
    """A visited page as returned by a history range query."""

    id: str
    url: Optional[str] = None
    title: Optional[str] = None
    last_visit_time: Optional[float] = Field(default=None, alias="lastVisitTime")
    visit_count: Optional[int] = Field(default=None, alias="visitCount")
    typed_count: Optional[int] = Field(default=None, alias="typedCount")


class ReadingListRecord(_RawRecord):
    """A reading-list entry. The URL is its identity."""

    url: str = Field(min_length=1)
    title: Optional[str] = None
    has_been_read: bool = Field(default=False, alias="hasBeenRead")
    creation_time: Optional[float] = Field(default=None, alias="creationTime")
    last_update_time: Optional[float] = Field(default=None, alias="lastUpdateTime")


class IndexedItem(BaseModel):
    """Canonical normalized document used for search.

    Instances are immutable; an update is a full replacement under the same id.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str = Field(min_length=1)
    title: str
    url: str
    content: str
    type: ItemType
    timestamp: int  # epoch millis
    snippet: Optional[str] = None

    @model_validator(mode="after")
    def _content_present_for_url(self) -> IndexedItem:
        if self.url and not self.content.strip():
            raise ValueError(f"item {self.id!r} has a url but empty content")
        return self


@dataclass(slots=True)
class SearchResult:
    """Represents a single ranked hit.

    `score` is derived from the item's content, `relevance` from the position
    at which the item surfaced. Neither is persisted.
    """

    item: IndexedItem
    score: float
    relevance: float

    @property
    def rank(self) -> float:
        return self.score + self.relevance
