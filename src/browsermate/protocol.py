"""Request/response messages exchanged with the retrieval handler.

Each request variant is tagged by its `type` field and validated as a whole
before anything reaches the engine.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from browsermate.documents.models import IndexedItem, SearchResult
from browsermate.exceptions import ProtocolError


class _Message(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ----- Requests -----


class SearchRequest(_Message):
    type: Literal["search"] = "search"
    query: str
    limit: int = Field(default=20, ge=1)


class ContextRequest(_Message):
    type: Literal["context"] = "context"
    query: str


class RebuildRequest(_Message):
    type: Literal["rebuild"] = "rebuild"


class SyncRequest(_Message):
    type: Literal["sync"] = "sync"


class AddItemRequest(_Message):
    type: Literal["add_item"] = "add_item"
    item: IndexedItem


class RemoveItemRequest(_Message):
    type: Literal["remove_item"] = "remove_item"
    item_id: str = Field(min_length=1)


class UpdateItemRequest(_Message):
    type: Literal["update_item"] = "update_item"
    item: IndexedItem


class StatsRequest(_Message):
    type: Literal["stats"] = "stats"


class ClearRequest(_Message):
    type: Literal["clear"] = "clear"


Request = Annotated[
    Union[
        SearchRequest,
        ContextRequest,
        RebuildRequest,
        SyncRequest,
        AddItemRequest,
        RemoveItemRequest,
        UpdateItemRequest,
        StatsRequest,
        ClearRequest,
    ],
    Field(discriminator="type"),
]

_REQUEST_ADAPTER: TypeAdapter[Request] = TypeAdapter(Request)


def parse_request(payload: Mapping[str, Any]) -> Request:
    """Validate a raw mapping into one of the request variants.

    Raises
    ------
    ProtocolError
        If the payload has an unknown `type` or invalid fields.
    """
    try:
        return _REQUEST_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ProtocolError(f"invalid request: {exc.error_count()} error(s): {exc.errors()[:3]}") from exc


# ----- Responses -----


class SearchHit(BaseModel):
    item: IndexedItem
    score: float
    relevance: float

    @classmethod
    def from_result(cls, result: SearchResult) -> SearchHit:
        return cls(item=result.item, score=result.score, relevance=result.relevance)


class SearchResponse(_Message):
    type: Literal["search_results"] = "search_results"
    results: List[SearchHit] = Field(default_factory=list)


class ContextResponse(_Message):
    type: Literal["context"] = "context"
    entries: List[Dict[str, Any]] = Field(default_factory=list)


class StatsResponse(_Message):
    type: Literal["stats"] = "stats"
    document_count: int
    serialized_index_byte_size: int


class SyncResponse(_Message):
    type: Literal["sync"] = "sync"
    success: bool
    items_count: int
    last_sync_time: int


class AckResponse(_Message):
    type: Literal["ack"] = "ack"
    request: str
    # Number of documents indexed, for rebuild
    count: Optional[int] = None


class ErrorResponse(_Message):
    type: Literal["error"] = "error"
    error: str
    message: str


Response = Union[
    SearchResponse,
    ContextResponse,
    StatsResponse,
    SyncResponse,
    AckResponse,
    ErrorResponse,
]
