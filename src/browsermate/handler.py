"""Dispatches validated protocol requests to the retrieval engine."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from browsermate.config import Settings
from browsermate.context import ContextAssembler
from browsermate.engine import RetrievalEngine
from browsermate.exceptions import BrowserMateError, ProtocolError
from browsermate.protocol import (
    AckResponse,
    AddItemRequest,
    ClearRequest,
    ContextRequest,
    ContextResponse,
    ErrorResponse,
    RebuildRequest,
    RemoveItemRequest,
    Request,
    Response,
    SearchHit,
    SearchRequest,
    SearchResponse,
    StatsRequest,
    StatsResponse,
    SyncRequest,
    SyncResponse,
    UpdateItemRequest,
    parse_request,
)

logger = logging.getLogger(__name__)


class RetrievalHandler:
    """Owns the engine and answers every request with a response message.

    `handle` never raises: invalid payloads and engine failures come back as
    an `ErrorResponse`.
    """

    def __init__(
        self,
        engine: RetrievalEngine,
        settings: Settings,
        *,
        assembler: Optional[ContextAssembler] = None,
    ) -> None:
        self.engine = engine
        self.settings = settings
        self._assembler = assembler or ContextAssembler()

    async def handle(self, payload: Mapping[str, Any]) -> Response:
        try:
            request = parse_request(payload)
        except ProtocolError as exc:
            logger.warning("Rejected request: %s", exc)
            return ErrorResponse(error="invalid_request", message=str(exc))
        try:
            return await self.dispatch(request)
        except ValueError as exc:
            return ErrorResponse(error="invalid_argument", message=str(exc))
        except BrowserMateError as exc:
            logger.warning("Request %s failed: %s", request.type, exc)
            return ErrorResponse(error=type(exc).__name__, message=str(exc))
        except Exception as exc:
            logger.exception("Unexpected failure handling %s request", request.type)
            return ErrorResponse(error="internal_error", message=str(exc))

    async def dispatch(self, request: Request) -> Response:
        engine = self.engine
        if isinstance(request, SearchRequest):
            results = await engine.search(request.query, request.limit)
            return SearchResponse(results=[SearchHit.from_result(r) for r in results])
        if isinstance(request, ContextRequest):
            results = await engine.search(request.query, self.settings.search.default_limit)
            entries = self._assembler.assemble(
                results, self.settings.sources, self.settings.search.max_results
            )
            return ContextResponse(entries=[e.as_dict() for e in entries])
        if isinstance(request, RebuildRequest):
            count = await engine.rebuild()
            return AckResponse(request=request.type, count=count)
        if isinstance(request, SyncRequest):
            result = await engine.sync()
            return SyncResponse(
                success=result.success,
                items_count=result.items_count,
                last_sync_time=result.last_sync_time,
            )
        if isinstance(request, AddItemRequest):
            await engine.add_item(request.item)
        elif isinstance(request, RemoveItemRequest):
            await engine.remove_item(request.item_id)
        elif isinstance(request, UpdateItemRequest):
            await engine.update_item(request.item)
        elif isinstance(request, StatsRequest):
            stats = await engine.get_stats()
            return StatsResponse(
                document_count=stats.document_count,
                serialized_index_byte_size=stats.serialized_index_byte_size,
            )
        elif isinstance(request, ClearRequest):
            await engine.clear()
        else:  # pragma: no cover
            raise ProtocolError(f"unhandled request type {request.type!r}")
        return AckResponse(request=request.type)
