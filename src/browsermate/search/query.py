"""Query classification, term search and heuristic ranking.

Two strategies:

- enumeration: "list my bookmarks", "我的阅读清单有什么" -> newest documents of the
  requested source types, no lexical matching at all;
- keyword: stop words stripped, terms extracted per script, prefix search per
  term, then ranked by `score + relevance`.

`search()` never raises for bad input or a broken index: failures shrink the
result list, at worst to `[]`.
"""

from __future__ import annotations

import logging
import re
import time
from typing import Callable, Dict, List, Optional, Sequence

from browsermate.documents.models import ITEM_TYPES, IndexedItem, ItemType, SearchResult
from browsermate.exceptions import QueryError
from browsermate.search.index_store import IndexSnapshot, IndexStore
from browsermate.search.vocabulary import (
    CJK_RE,
    CJK_RUN_RE,
    INTENT_RULES,
    LATIN_RUN_RE,
    SOURCE_KEYWORDS,
    STOP_WORDS,
    Intent,
    IntentRule,
    SourceKeyword,
    StopWord,
)

logger = logging.getLogger(__name__)

ENUMERATION_SCORE = 10.0
RECENT_WINDOW_MS = 30 * 24 * 60 * 60 * 1000
MIN_TERM_LENGTH = 3

_WHITESPACE = re.compile(r"\s+")


def _now_millis() -> float:
    return time.time() * 1000


class QueryEngine:
    """Runs queries against the active snapshot of an `IndexStore`."""

    def __init__(
        self,
        store: IndexStore,
        *,
        intent_rules: Sequence[IntentRule] = INTENT_RULES,
        source_keywords: Sequence[SourceKeyword] = SOURCE_KEYWORDS,
        stop_words: Sequence[StopWord] = STOP_WORDS,
        clock: Callable[[], float] = _now_millis,
    ) -> None:
        self._store = store
        self._intent_rules = tuple(intent_rules)
        self._source_keywords = tuple(source_keywords)
        self._stop_words = tuple(stop_words)
        self._clock = clock

    # ----- classification -----

    def classify(self, query: str) -> Intent:
        lowered = query.lower()
        for rule in self._intent_rules:
            if rule.pattern.search(lowered):
                return rule.intent
        return "keyword"

    def requested_types(self, query: str) -> List[ItemType]:
        """Source types named in the query; every type when none is named."""
        lowered = query.lower()
        wanted = {kw.item_type for kw in self._source_keywords if kw.pattern.search(lowered)}
        return [t for t in ITEM_TYPES if t in wanted] or list(ITEM_TYPES)

    def clean(self, query: str) -> str:
        cleaned = query.lower()
        for stop in self._stop_words:
            cleaned = stop.pattern.sub(" ", cleaned)
        return _WHITESPACE.sub(" ", cleaned).strip()

    def extract_terms(self, cleaned: str) -> List[str]:
        if CJK_RE.search(cleaned):
            return [*CJK_RUN_RE.findall(cleaned), *LATIN_RUN_RE.findall(cleaned)]
        return [t for t in cleaned.split() if len(t) >= MIN_TERM_LENGTH]

    # ----- search -----

    def search(self, query: str, limit: int = 20) -> List[SearchResult]:
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if not query or not query.strip():
            return []
        snapshot = self._store.view()
        if len(snapshot) == 0:
            logger.info("Query: index is empty, nothing to search")
            return []
        try:
            if self.classify(query) == "enumerate":
                return self._enumerate(snapshot, query, limit)
            return self._keyword(snapshot, query, limit)
        except Exception:
            logger.exception("Query: search for %r failed", query)
            return []

    def _enumerate(self, snapshot: IndexSnapshot, query: str, limit: int) -> List[SearchResult]:
        types = set(self.requested_types(query))
        logger.debug("Query: enumerating types %s", sorted(types))
        selected = [item for item in snapshot.items() if item.type in types]
        selected.sort(key=lambda item: (-item.timestamp, item.id))
        return [
            SearchResult(item=item, score=ENUMERATION_SCORE, relevance=(limit - i) / limit)
            for i, item in enumerate(selected[:limit])
        ]

    def exact_title_ids(self, snapshot: IndexSnapshot, query: str) -> List[str]:
        """Ids of documents whose title equals the query, raw or cleaned."""
        targets = {_WHITESPACE.sub(" ", query.lower()).strip(), self.clean(query)}
        targets.discard("")
        return [item.id for item in snapshot.items() if item.title.lower().strip() in targets]

    def _collect(
        self,
        snapshot: IndexSnapshot,
        terms: List[str],
        limit: int,
        *,
        pinned: Sequence[str] = (),
    ) -> List[str]:
        # pinned ids lead the candidate list and survive the cap
        cap = max(limit * 2, len(pinned))
        seen: Dict[str, None] = dict.fromkeys(pinned)
        for term in terms:
            try:
                ids = snapshot.search_term(term, cap)
            except Exception as exc:
                logger.warning("Query: %s", QueryError(f"term {term!r} failed: {exc}"))
                continue
            logger.debug("Query: term %r matched %d documents", term, len(ids))
            for item_id in ids:
                seen.setdefault(item_id, None)
        return list(seen)[:cap]

    def _keyword(self, snapshot: IndexSnapshot, query: str, limit: int) -> List[SearchResult]:
        cleaned = self.clean(query)
        terms = self.extract_terms(cleaned)
        if not terms:
            return []
        matched = self._collect(
            snapshot, terms, limit, pinned=self.exact_title_ids(snapshot, query)
        )

        now = self._clock()
        results: List[SearchResult] = []
        for position, item_id in enumerate(matched):
            item = snapshot.get(item_id)
            if item is None:
                logger.warning("Query: %s matched in the index but has no document", item_id)
                continue
            try:
                score = self.score(cleaned, item, now=now, raw=query)
            except Exception as exc:
                logger.warning("Query: %s", QueryError(f"scoring {item_id} failed: {exc}"))
                continue
            results.append(
                SearchResult(item=item, score=score, relevance=(limit - position) / limit)
            )
        results.sort(key=lambda r: r.rank, reverse=True)
        return results[:limit]

    def score(
        self,
        cleaned: str,
        item: IndexedItem,
        *,
        now: Optional[float] = None,
        raw: Optional[str] = None,
    ) -> float:
        """Content-derived score of `item` for an already cleaned query.

        `raw` is the query as typed; a title equal to it also counts as exact.
        """
        q = cleaned.lower()
        title = item.title.lower()
        score = 0.0
        exact = {q}
        if raw is not None:
            exact.add(_WHITESPACE.sub(" ", raw.lower()).strip())
        if title.strip() in exact:
            score += 10
        if q in title:
            score += 5
        if q in item.content.lower():
            score += 2
        current = self._clock() if now is None else now
        if current - item.timestamp < RECENT_WINDOW_MS:
            score += 1
        if item.type == "bookmark":
            score += 0.5
        return score
