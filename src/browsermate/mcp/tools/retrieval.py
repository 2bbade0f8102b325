"""Browser retrieval tools for FastMCP.

Every tool goes through the `RetrievalHandler`, so tool calls see exactly the
request validation and error handling any other client gets.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List

from fastmcp import FastMCP

from browsermate.handler import RetrievalHandler
from browsermate.protocol import ErrorResponse


def register_retrieval_tools(mcp: FastMCP, get_state: Callable[[], Any]) -> None:
    """Register browser retrieval tools on the given FastMCP instance.

    The `get_state` callable should return an object with a `handler`
    attribute holding a `RetrievalHandler`.
    """

    def _get_handler() -> RetrievalHandler:
        handler = getattr(get_state(), "handler", None)
        if handler is None:
            raise RuntimeError("BrowserMate is not initialized.")
        return handler

    async def _call(payload: Dict[str, Any]) -> Dict[str, Any]:
        response = await _get_handler().handle(payload)
        if isinstance(response, ErrorResponse):
            raise RuntimeError(f"{response.error}: {response.message}")
        return response.model_dump(mode="json")

    @mcp.tool
    async def browser_search(query: str, limit: int = 20) -> List[Dict[str, Any]]:
        """Search bookmarks, history and reading list.

        Parameters
        ----------
        query: str
            Free text, or a listing request such as "list my bookmarks" or "列出书签".
        limit: int
            Maximum number of results (default 20).
        """
        res = await _call({"type": "search", "query": query, "limit": limit})
        return [
            {**hit["item"], "score": hit["score"], "relevance": hit["relevance"]}
            for hit in res["results"]
        ]

    @mcp.tool
    async def browser_context(query: str) -> List[Dict[str, Any]]:
        """Return the browser documents relevant to `query`, filtered by enabled sources.

        Each entry has title, url, snippet, type and timestamp.
        """
        res = await _call({"type": "context", "query": query})
        return res["entries"]

    @mcp.tool
    async def browser_sync() -> Dict[str, Any]:
        """Fetch fresh browser data and rebuild the search index."""
        res = await _call({"type": "sync"})
        return {k: res[k] for k in ("success", "items_count", "last_sync_time")}

    @mcp.tool
    async def browser_rebuild() -> Dict[str, Any]:
        """Rebuild the search index from the last synced data."""
        res = await _call({"type": "rebuild"})
        return {"count": res["count"]}

    @mcp.tool
    async def browser_stats() -> Dict[str, Any]:
        """Report the indexed document count and serialized index size in bytes."""
        res = await _call({"type": "stats"})
        return {k: res[k] for k in ("document_count", "serialized_index_byte_size")}

    @mcp.tool
    async def browser_clear() -> Dict[str, Any]:
        """Drop the search index and all stored browser data."""
        await _call({"type": "clear"})
        return {"cleared": True}
