import pytest
from fastmcp import Client

from browsermate.config import Settings, StorageConfig, SyncConfig
from browsermate.mcp import server
from browsermate.mcp.server import AppState


def test_app_state_builds_engine_and_handler() -> None:
    state = AppState(Settings(storage=StorageConfig(backend="memory")))
    state.init_engine()
    assert state.handler is not None
    assert state.handler.engine is state.engine
    # periodic sync is off by default
    state.start_scheduler()
    assert state.scheduler is None


@pytest.mark.asyncio
async def test_app_state_starts_and_stops_scheduler() -> None:
    state = AppState(
        Settings(storage=StorageConfig(backend="memory"), sync=SyncConfig(enabled=True, interval_minutes=15))
    )
    state.init_engine()
    state.start_scheduler()
    try:
        assert state.scheduler is not None and state.scheduler.started
    finally:
        state.stop_scheduler()
    assert state.scheduler is None


@pytest.mark.asyncio
async def test_health_tool() -> None:
    client = Client(server.mcp)
    async with client:
        res = await client.call_tool("health", {})
    assert res.content[0].text == "ok"
