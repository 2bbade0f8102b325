import pytest

from browsermate.config import SourcesConfig
from browsermate.context import ContextAssembler
from browsermate.documents.models import IndexedItem, SearchResult


def result(item_id: str, kind: str, snippet=None, content: str = "") -> SearchResult:
    url = f"https://{item_id}.example"
    item = IndexedItem(
        id=item_id,
        title=item_id.title(),
        url=url,
        content=content or f"{item_id} {url}",
        type=kind,  # type: ignore[arg-type]
        timestamp=1,
        snippet=snippet,
    )
    return SearchResult(item=item, score=1.0, relevance=0.5)


RESULTS = [
    result("one", "bookmark", snippet="first"),
    result("two", "history", snippet="second"),
    result("three", "reading-list", snippet="third"),
    result("four", "history", snippet="fourth"),
]


def test_disabled_history_never_reaches_context() -> None:
    entries = ContextAssembler().assemble(RESULTS, SourcesConfig(history=False), 20)
    assert [e.url for e in entries] == ["https://one.example", "https://three.example"]
    assert all(e.type != "history" for e in entries)


def test_context_is_truncated_after_filtering() -> None:
    entries = ContextAssembler().assemble(RESULTS, SourcesConfig(bookmarks=False), 2)
    assert [e.snippet for e in entries] == ["second", "third"]


def test_entry_projection_and_snippet_fallback() -> None:
    long = "x" * 300
    entries = ContextAssembler().assemble([result("five", "bookmark", content=long)], SourcesConfig(), 5)
    assert entries[0].as_dict() == {
        "title": "Five",
        "url": "https://five.example",
        "snippet": "x" * 200,
        "type": "bookmark",
        "timestamp": 1,
    }


def test_zero_budget_and_negative_budget() -> None:
    assert ContextAssembler().assemble(RESULTS, SourcesConfig(), 0) == []
    with pytest.raises(ValueError):
        ContextAssembler().assemble(RESULTS, SourcesConfig(), -1)
