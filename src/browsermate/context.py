"""Projection of ranked search results into the generation context.

Pure filter + truncate + project: no storage, no network.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

from browsermate.config import SourcesConfig
from browsermate.documents.models import SearchResult

CONTEXT_SNIPPET_LENGTH = 200


@dataclass(slots=True)
class ContextEntry:
    """One document as handed to the generation step."""

    title: str
    url: str
    snippet: str
    type: str
    timestamp: int

    def as_dict(self) -> Dict[str, Any]:
        return asdict(self)


class ContextAssembler:
    """Filters results by enabled sources and bounds them to a budget."""

    def assemble(
        self,
        results: Iterable[SearchResult],
        sources: SourcesConfig,
        max_results: int,
    ) -> List[ContextEntry]:
        if max_results < 0:
            raise ValueError(f"max_results must not be negative, got {max_results}")
        entries: List[ContextEntry] = []
        for result in results:
            if len(entries) >= max_results:
                break
            item = result.item
            if not sources.is_enabled(item.type):
                continue
            entries.append(
                ContextEntry(
                    title=item.title,
                    url=item.url,
                    snippet=item.snippet or item.content[:CONTEXT_SNIPPET_LENGTH],
                    type=item.type,
                    timestamp=item.timestamp,
                )
            )
        return entries
