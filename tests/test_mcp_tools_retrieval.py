import json
from typing import Any, Dict, List, Union

import pytest
from fastmcp import Client, FastMCP
from fastmcp.exceptions import ToolError

from browsermate.config import Settings, SourcesConfig, StorageConfig
from browsermate.engine import RetrievalEngine
from browsermate.handler import RetrievalHandler
from browsermate.mcp.tools.retrieval import register_retrieval_tools
from browsermate.sources.base import SourceProviders
from browsermate.sources.memory import StaticBookmarkProvider, StaticHistoryProvider
from browsermate.storage.kv import MemoryKeyValueStore
from browsermate.storage.repository import BrowserDataRepository

NOW = 1_700_000_000_000


class DummyState:
    def __init__(self) -> None:
        self.settings = Settings(storage=StorageConfig(backend="memory"), sources=SourcesConfig(history=False))
        self.engine = RetrievalEngine(
            BrowserDataRepository(MemoryKeyValueStore()),
            providers=SourceProviders(
                bookmarks=StaticBookmarkProvider(
                    [{"id": "1", "title": "React Tutorial", "url": "https://example.com/react", "dateAdded": NOW}]
                ),
                history=StaticHistoryProvider(
                    [{"id": "10", "title": "React Conf", "url": "https://conf.react.dev", "lastVisitTime": NOW}]
                ),
            ),
            clock=lambda: NOW,
        )
        self.handler = RetrievalHandler(self.engine, self.settings)


def _extract_json_payload(result: Any) -> Union[Dict[str, Any], List[Dict[str, Any]]]:
    # If already a dict/list, return as-is
    if isinstance(result, (dict, list)):
        return result
    # FastMCP Client returns CallToolResult with content list of TextContent
    content = getattr(result, "content", None)
    if isinstance(content, list) and content:
        for item in content:
            text = getattr(item, "text", None)
            if isinstance(text, str):
                try:
                    return json.loads(text)
                except json.JSONDecodeError:
                    continue
    raise AssertionError("Unable to extract JSON payload from tool result")


@pytest.mark.asyncio
async def test_retrieval_tools_sync_search_and_context() -> None:
    mcp = FastMCP("test")
    state = DummyState()
    register_retrieval_tools(mcp, get_state=lambda: state)

    client = Client(mcp)
    async with client:
        res_sync = await client.call_tool("browser_sync", {})
        res_search = await client.call_tool("browser_search", {"query": "react", "limit": 10})
        res_context = await client.call_tool("browser_context", {"query": "react"})
        res_stats = await client.call_tool("browser_stats", {})

    sync = _extract_json_payload(res_sync)
    assert sync == {"success": True, "items_count": 2, "last_sync_time": NOW}

    hits = _extract_json_payload(res_search)
    assert {h["id"] for h in hits} == {"bookmark_1", "history_10"}
    assert all("score" in h and "relevance" in h for h in hits)

    # history is disabled for the generation context
    context = _extract_json_payload(res_context)
    assert [c["url"] for c in context] == ["https://example.com/react"]

    stats = _extract_json_payload(res_stats)
    assert stats["document_count"] == 2
    assert stats["serialized_index_byte_size"] > 0


@pytest.mark.asyncio
async def test_retrieval_tools_rebuild_and_clear() -> None:
    mcp = FastMCP("test")
    state = DummyState()
    register_retrieval_tools(mcp, get_state=lambda: state)

    client = Client(mcp)
    async with client:
        await client.call_tool("browser_sync", {})
        res_rebuild = await client.call_tool("browser_rebuild", {})
        res_clear = await client.call_tool("browser_clear", {})
        res_stats = await client.call_tool("browser_stats", {})

    assert _extract_json_payload(res_rebuild) == {"count": 2}
    assert _extract_json_payload(res_clear) == {"cleared": True}
    assert _extract_json_payload(res_stats) == {"document_count": 0, "serialized_index_byte_size": 0}


@pytest.mark.asyncio
async def test_retrieval_tools_surface_errors() -> None:
    mcp = FastMCP("test")
    state = DummyState()
    register_retrieval_tools(mcp, get_state=lambda: state)

    client = Client(mcp)
    async with client:
        with pytest.raises(ToolError):
            await client.call_tool("browser_search", {"query": "react", "limit": 0})


@pytest.mark.asyncio
async def test_retrieval_tools_require_initialized_state() -> None:
    mcp = FastMCP("test")
    register_retrieval_tools(mcp, get_state=lambda: None)

    client = Client(mcp)
    async with client:
        with pytest.raises(ToolError):
            await client.call_tool("browser_stats", {})
