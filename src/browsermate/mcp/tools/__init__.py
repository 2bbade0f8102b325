"""Tool registration modules for the BrowserMate MCP server."""

from .retrieval import register_retrieval_tools

__all__ = [
    "register_retrieval_tools",
]
