"""In-memory Whoosh text index with forward (prefix) matching.

Documents live in a `RamStorage`; the storage files themselves are the
serialized form, so an exported index reopens exactly as it was written.
"""

from __future__ import annotations

import base64
import json
import threading
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from whoosh import scoring
from whoosh.analysis import Filter, LowercaseFilter, RegexTokenizer, Token
from whoosh.fields import ID, TEXT, Schema
from whoosh.filedb.filestore import RamStorage
from whoosh.index import Index
from whoosh.query import And, Prefix, Query

from browsermate.exceptions import IndexCorruptionError
from browsermate.search.base_search import TextIndex
from browsermate.search.vocabulary import CJK_CHARS, CJK_RUN_RE

EXPORT_FORMAT = 1

# CJK runs and other word runs become separate tokens ("react教程" -> react, 教程)
TOKEN_PATTERN = f"[{CJK_CHARS}]+|[^\\W{CJK_CHARS}]+"


class CjkSuffixFilter(Filter):
    """Emit every suffix of a CJK token.

    CJK text has no spaces, so a whole sentence is one token; indexing its
    suffixes lets a prefix query find a word anywhere inside the run.
    """

    def __call__(self, tokens: Iterator[Token]) -> Iterator[Token]:
        for t in tokens:
            text = t.text
            if len(text) < 2 or not CJK_RUN_RE.fullmatch(text):
                yield t
                continue
            for start in range(len(text)):
                t.text = text[start:]
                yield t


def _index_analyzer():
    return RegexTokenizer(TOKEN_PATTERN) | LowercaseFilter() | CjkSuffixFilter()


def _term_analyzer():
    return RegexTokenizer(TOKEN_PATTERN) | LowercaseFilter()


def _make_schema() -> Schema:
    return Schema(
        id=ID(stored=True, unique=True),
        content=TEXT(analyzer=_index_analyzer(), phrase=False),
    )


class WhooshTextIndex(TextIndex):
    """Prefix-searchable index over (id, content) pairs."""

    def __init__(self, storage: Optional[RamStorage] = None) -> None:
        self._storage = storage or RamStorage()
        self._index: Index
        if self._storage.index_exists():
            self._index = self._storage.open_index()
        else:
            self._index = self._storage.create_index(_make_schema())
        # whoosh refuses a second concurrent writer instead of waiting for it
        self._write_lock = threading.Lock()
        self._term_analyzer = _term_analyzer()

    # ----- writes -----

    def add(self, doc_id: str, text: str) -> None:
        with self._write_lock:
            writer = self._index.writer()
            writer.update_document(id=doc_id, content=text)
            writer.commit()

    def add_many(self, docs: Iterable[Tuple[str, str]]) -> int:
        count = 0
        with self._write_lock:
            writer = self._index.writer()
            try:
                for doc_id, text in docs:
                    writer.update_document(id=doc_id, content=text)
                    count += 1
            except Exception:
                writer.cancel()
                raise
            writer.commit()
        return count

    def remove(self, doc_id: str) -> None:
        with self._write_lock:
            writer = self._index.writer()
            if writer.delete_by_term("id", doc_id):
                writer.commit()
            else:
                writer.cancel()

    # ----- reads -----

    def _prefix_query(self, term: str) -> Optional[Query]:
        parts = [t.text for t in self._term_analyzer(term)]
        if not parts:
            return None
        if len(parts) == 1:
            return Prefix("content", parts[0], constantscore=False)
        return And([Prefix("content", p, constantscore=False) for p in parts])

    def search_prefix(self, term: str, *, limit: int) -> List[str]:
        q = self._prefix_query(term or "")
        if q is None:
            return []
        with self._index.searcher(weighting=scoring.BM25F()) as searcher:
            results = searcher.search(q, limit=max(1, int(limit)))
            return [hit["id"] for hit in results]

    def doc_ids(self) -> Set[str]:
        with self._index.searcher() as searcher:
            return {fields["id"] for fields in searcher.all_stored_fields()}

    def __len__(self) -> int:
        return self._index.doc_count()

    # ----- serialization -----

    def export(self) -> str:
        with self._write_lock:
            files = {
                name: base64.b64encode(bytes(data)).decode("ascii")
                for name, data in self._storage.files.items()
            }
        return json.dumps({"format": EXPORT_FORMAT, "files": files}, sort_keys=True)

    @classmethod
    def from_export(cls, blob: str) -> WhooshTextIndex:
        """Reopen an index produced by `export()`.

        Raises `IndexCorruptionError` for anything that does not reopen cleanly.
        """
        try:
            payload = json.loads(blob)
            if payload.get("format") != EXPORT_FORMAT:
                raise ValueError(f"unsupported export format {payload.get('format')!r}")
            storage = RamStorage()
            for name, encoded in payload["files"].items():
                storage.files[name] = base64.b64decode(encoded, validate=True)
            if not storage.index_exists():
                raise ValueError("export holds no index")
            restored = cls(storage)
            # Touch the segments so truncated files fail here, not mid-query
            restored.doc_ids()
            return restored
        except Exception as exc:
            raise IndexCorruptionError(f"cannot restore serialized index: {exc}") from exc
