"""Custom exception hierarchy for BrowserMate.

These exceptions allow callers to discriminate error categories
and handle them appropriately while preserving the original context.
Most of them never leave the engine: they are raised internally and
contained where the engine degrades to reduced functionality.
"""

from __future__ import annotations


class BrowserMateError(Exception):
    """Base class for all BrowserMate exceptions."""


class ConfigError(BrowserMateError):
    """Raised when configuration loading or validation fails."""


class SourceFetchError(BrowserMateError):
    """Raised when a raw-data provider (bookmarks, history, reading list) fails."""

    def __init__(self, source: str, message: str) -> None:
        super().__init__(f"{source}: {message}")
        self.source = source


class StorageError(BrowserMateError):
    """Raised when the storage layer encounters an error (DB, filesystem, etc.)."""


class PersistenceError(StorageError):
    """Raised when writing engine state back to storage fails."""


class SearchError(BrowserMateError):
    """Raised for search indexing/query issues."""


class IndexCorruptionError(SearchError):
    """Raised when a serialized index blob cannot be restored."""


class QueryError(SearchError):
    """Raised when a single term search or item scoring step fails."""


class ProtocolError(BrowserMateError):
    """Raised when a request payload does not match any known request type."""
