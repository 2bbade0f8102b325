"""BrowserMate MCP server entrypoint using FastMCP.

Exposes search over the local browser's bookmarks, history and reading list.
Run with:
  - browsermate-mcp
  - or: python -m browsermate.mcp.server (ensure PYTHONPATH includes ./src)
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, Optional

from fastmcp import FastMCP

from browsermate.config import Settings, load_settings
from browsermate.engine import RetrievalEngine
from browsermate.handler import RetrievalHandler
from browsermate.log_config import setup_logging
from browsermate.mcp.tools import register_retrieval_tools
from browsermate.sources.chrome import chrome_providers
from browsermate.sources.scheduler import SyncScheduler

logger = logging.getLogger(__name__)


class AppState:
    """Application state shared by MCP tools."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.engine: Optional[RetrievalEngine] = None
        self.handler: Optional[RetrievalHandler] = None
        self.scheduler: Optional[SyncScheduler] = None

    def init_engine(self) -> None:
        """Build the engine and handler from configuration."""
        self.engine = RetrievalEngine.from_settings(
            self.settings, providers=chrome_providers(self.settings.chrome)
        )
        self.handler = RetrievalHandler(self.engine, self.settings)

    def start_scheduler(self) -> None:
        """Start periodic syncs when enabled in configuration.

        Must be called from within the running event loop.
        """
        cfg = self.settings.sync
        if not cfg.enabled or self.engine is None or self.scheduler is not None:
            return
        self.scheduler = SyncScheduler()
        self.scheduler.schedule_sync(self.engine, interval=timedelta(minutes=cfg.interval_minutes))
        self.scheduler.start()
        logger.info(
            "Periodic sync every %d minutes, next run at %s",
            cfg.interval_minutes,
            self.scheduler.next_run_time(),
        )

    def stop_scheduler(self) -> None:
        if self.scheduler is not None:
            self.scheduler.shutdown(wait=False)
            self.scheduler = None


# Global state and server instance
_state: Optional[AppState] = None


@asynccontextmanager
async def _lifespan(server: FastMCP) -> AsyncIterator[Dict[str, Any]]:
    if _state is not None:
        _state.start_scheduler()
    try:
        yield {}
    finally:
        if _state is not None:
            _state.stop_scheduler()


mcp = FastMCP("BrowserMate MCP Server", lifespan=_lifespan)


# ----- Tools -----

@mcp.tool
def health() -> str:
    """Simple health check tool."""
    return "ok"


# ----- Entrypoint -----

def main() -> None:
    """Initialize state and run the MCP server."""
    global _state
    settings = load_settings()
    setup_logging(settings.app.log_level, structured=settings.app.structured_logs)
    _state = AppState(settings)
    _state.init_engine()
    register_retrieval_tools(mcp, get_state=lambda: _state)
    # Choose transport based on configuration: stdio (default), http, or sse
    transport = settings.app.transport
    logger.info("Starting %s over %s", settings.app.name, transport)
    if transport in ("http", "sse"):
        mcp.run(transport=transport, host=settings.app.host, port=settings.app.port)
    else:
        mcp.run()


if __name__ == "__main__":  # pragma: no cover
    main()
