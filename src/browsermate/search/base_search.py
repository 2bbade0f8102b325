"""Abstract text index interface.

Defines the minimal surface the index store needs from a text index backend
(e.g., Whoosh), enabling extensibility and testability via a common contract.
The serialized form is opaque: only the search behavior must survive a round
trip, not the byte layout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, List, Set, Tuple


class TextIndex(ABC):
    """Abstract interface for prefix-searchable text index implementations."""

    @abstractmethod
    def add(self, doc_id: str, text: str) -> None:
        """Index `text` under `doc_id`, replacing any previous entry."""

    @abstractmethod
    def add_many(self, docs: Iterable[Tuple[str, str]]) -> int:
        """Index a batch of (doc_id, text) pairs; return how many were indexed."""

    @abstractmethod
    def remove(self, doc_id: str) -> None:
        """Remove a document from the index; no-op when absent."""

    @abstractmethod
    def search_prefix(self, term: str, *, limit: int) -> List[str]:
        """Return up to `limit` ids with a token starting with `term`."""

    @abstractmethod
    def doc_ids(self) -> Set[str]:
        """Return the ids of all live documents."""

    @abstractmethod
    def export(self) -> str:
        """Serialize the index into an opaque string."""
        raise NotImplementedError
