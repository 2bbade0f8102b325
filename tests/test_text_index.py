import pytest

from browsermate.exceptions import IndexCorruptionError
from browsermate.search.text_index import WhooshTextIndex


def make_index() -> WhooshTextIndex:
    index = WhooshTextIndex()
    index.add_many(
        [
            ("a", "React Tutorial https://example.com/react"),
            ("b", "前端开发教程 https://fe.example.cn"),
            ("c", "Python Docs https://docs.python.org"),
            ("d", "react教程 https://mixed.example"),
        ]
    )
    return index


def test_forward_prefix_matching() -> None:
    index = make_index()
    assert set(index.search_prefix("rea", limit=10)) == {"a", "d"}
    assert index.search_prefix("pyth", limit=10) == ["c"]
    # forward only: a suffix of a latin token does not match
    assert index.search_prefix("thon", limit=10) == []


def test_matching_is_case_insensitive() -> None:
    index = make_index()
    assert index.search_prefix("PYTHON", limit=10) == ["c"]


def test_cjk_term_matches_inside_a_run() -> None:
    index = make_index()
    assert set(index.search_prefix("教程", limit=10)) == {"b", "d"}
    assert index.search_prefix("开发", limit=10) == ["b"]


def test_multi_token_term_requires_every_part() -> None:
    index = make_index()
    assert index.search_prefix("react tut", limit=10) == ["a"]


def test_limit_and_blank_terms() -> None:
    index = make_index()
    assert len(index.search_prefix("https", limit=2)) == 2
    assert index.search_prefix("", limit=10) == []
    assert index.search_prefix("  !! ", limit=10) == []


def test_add_is_idempotent_and_remove_is_complete() -> None:
    index = WhooshTextIndex()
    index.add("x", "Zebra crossing")
    index.add("x", "Zebra crossing")
    assert len(index) == 1
    index.remove("x")
    assert index.search_prefix("zebra", limit=10) == []
    assert len(index) == 0
    # removing an unknown id is a no-op
    index.remove("missing")
    assert index.doc_ids() == set()


def test_export_round_trip_preserves_results() -> None:
    index = make_index()
    restored = WhooshTextIndex.from_export(index.export())
    assert restored.doc_ids() == {"a", "b", "c", "d"}
    for term in ("rea", "教程", "docs", "react tut"):
        assert restored.search_prefix(term, limit=10) == index.search_prefix(term, limit=10)


@pytest.mark.parametrize(
    "blob",
    [
        "not json",
        '{"format": 2, "files": {}}',
        '{"format": 1, "files": {}}',
        '{"format": 1, "files": {"_MAIN_1.toc": "@@not-base64@@"}}',
    ],
)
def test_from_export_rejects_corrupt_blobs(blob: str) -> None:
    with pytest.raises(IndexCorruptionError):
        WhooshTextIndex.from_export(blob)
