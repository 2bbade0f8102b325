import logging

import pytest

from browsermate.documents.models import BookmarkNode, HistoryRecord, IndexedItem
from browsermate.documents.normalizer import (
    make_snippet,
    normalize_all,
    normalize_bookmarks,
    normalize_history,
    normalize_reading_list,
)

NOW = 1_700_000_000_000


def clock() -> int:
    return NOW


# ---------- Bookmarks ----------


def test_bookmark_tree_emits_only_url_nodes() -> None:
    tree = [
        {
            "id": "0",
            "title": "root",
            "children": [
                {"id": "1", "title": "React Tutorial", "url": "https://example.com/react", "dateAdded": 1000},
                {
                    "id": "2",
                    "title": "Folder",
                    "children": [{"id": "3", "url": "https://x.org"}],
                },
            ],
        }
    ]
    items = normalize_bookmarks(tree, clock=clock)

    assert [i.id for i in items] == ["bookmark_1", "bookmark_3"]
    react, untitled = items
    assert react.type == "bookmark"
    assert react.content == "React Tutorial https://example.com/react"
    assert react.timestamp == 1000
    assert untitled.title == "Untitled"
    # content uses the raw title, so an untitled item's content is its URL
    assert untitled.content == "https://x.org"
    assert untitled.timestamp == NOW


def test_bookmark_url_node_children_are_walked() -> None:
    node = BookmarkNode(
        id="1",
        title="Parent",
        url="https://parent.example",
        children=[BookmarkNode(id="2", title="Child", url="https://child.example")],
    )
    ids = [i.id for i in normalize_bookmarks([node], clock=clock)]
    assert ids == ["bookmark_1", "bookmark_2"]


def test_malformed_bookmark_root_is_skipped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    tree = [{"title": "no id"}, {"id": "9", "title": "Ok", "url": "https://ok.example"}]
    items = normalize_bookmarks(tree, clock=clock)
    assert [i.id for i in items] == ["bookmark_9"]
    assert "Skipping malformed bookmark record" in caplog.text


def test_malformed_child_skips_only_that_node(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    tree = [
        {
            "id": "0",
            "title": "Bookmarks bar",
            "children": [
                {"id": "1", "title": "A", "url": "https://a.example"},
                {"title": "missing id", "url": "https://broken.example"},
                {"id": "2", "title": "B", "url": "https://b.example"},
            ],
        }
    ]
    items = normalize_bookmarks(tree, clock=clock)
    assert [i.id for i in items] == ["bookmark_1", "bookmark_2"]
    assert "Skipping malformed bookmark record" in caplog.text


def test_children_of_malformed_folder_are_still_walked() -> None:
    tree = [
        {
            "title": "folder without id",
            "children": [{"id": "5", "title": "Kept", "url": "https://kept.example"}],
        }
    ]
    assert [i.id for i in normalize_bookmarks(tree, clock=clock)] == ["bookmark_5"]


# ---------- History / reading list ----------


def test_history_requires_url_and_title() -> None:
    records = [
        {"id": "1", "url": "https://a.example", "title": "A", "lastVisitTime": 5.0},
        {"id": "2", "url": "https://b.example"},
        {"id": "3", "title": "No url"},
        HistoryRecord(id="4", url="https://d.example", title="D"),
    ]
    items = normalize_history(records, clock=clock)
    assert [(i.id, i.timestamp) for i in items] == [("history_1", 5), ("history_4", NOW)]
    assert all(i.type == "history" for i in items)


def test_reading_list_identity_is_url(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)
    records = [
        {"url": "https://blog.example/post", "title": "Post", "creationTime": 42},
        {"title": "missing url"},
    ]
    items = normalize_reading_list(records, clock=clock)
    assert [i.id for i in items] == ["reading_https://blog.example/post"]
    assert items[0].type == "reading-list"
    assert items[0].timestamp == 42
    assert "reading-list" in caplog.text


def test_normalize_all_concatenates_sources() -> None:
    items = normalize_all(
        [{"id": "1", "title": "B", "url": "https://b.example"}],
        [{"id": "2", "title": "H", "url": "https://h.example"}],
        [{"url": "https://r.example"}],
        clock=clock,
    )
    assert {i.type for i in items} == {"bookmark", "history", "reading-list"}
    assert len(items) == 3


# ---------- Snippets / model invariants ----------


def test_make_snippet_truncates_long_content() -> None:
    assert make_snippet("short") == "short"
    long = "a" * 250
    snippet = make_snippet(long)
    assert snippet == "a" * 200 + "..."


def test_indexed_item_rejects_url_without_content() -> None:
    with pytest.raises(ValueError):
        IndexedItem(id="x", title="t", url="https://x", content="  ", type="bookmark", timestamp=0)


def test_indexed_item_is_frozen() -> None:
    item = IndexedItem(id="x", title="t", url="https://x", content="t https://x", type="bookmark", timestamp=0)
    with pytest.raises(Exception):
        item.title = "other"  # type: ignore[misc]
