"""
Unit tests for destination path mapping and exclude patterns.
"""

import pytest

from fscopy.transfer.paths import (
    dest_collection_path,
    dest_document_id,
    join_path,
    matches_exclude_pattern,
)


class TestDestCollectionPath:
    """Tests for dest_collection_path."""

    def test_renames_root_collection(self) -> None:
        assert dest_collection_path("users", {"users": "members"}) == "members"

    def test_renames_only_root_segment_of_nested_path(self) -> None:
        assert (
            dest_collection_path("users/u1/orders", {"users": "members", "orders": "x"})
            == "members/u1/orders"
        )

    def test_unmapped_path_unchanged(self) -> None:
        assert dest_collection_path("orders", {"users": "members"}) == "orders"
        assert dest_collection_path("orders", {}) == "orders"


class TestDestDocumentId:
    """Tests for dest_document_id."""

    @pytest.mark.parametrize(
        ("prefix", "suffix", "expected"),
        [(None, None, "abc"), ("bk_", None, "bk_abc"), (None, "_v2", "abc_v2"), ("p", "s", "pabcs")],
    )
    def test_prefix_and_suffix(self, prefix, suffix, expected: str) -> None:
        assert dest_document_id("abc", prefix, suffix) == expected


class TestExcludePatterns:
    """Tests for matches_exclude_pattern."""

    @pytest.mark.parametrize(
        ("name", "patterns", "expected"),
        [
            ("logs", ["logs"], True),
            ("logs_old", ["logs"], False),
            ("temp_cache", ["temp*"], True),
            ("my_temp", ["*temp"], True),
            ("a.b", ["a*b"], True),
            ("axb", ["a.b"], False),
            ("users/1/logs", ["logs"], True),
            ("orders", ["logs", "temp*"], False),
            ("anything", [], False),
        ],
    )
    def test_patterns(self, name: str, patterns: list[str], expected: bool) -> None:
        assert matches_exclude_pattern(name, patterns) is expected


def test_join_path() -> None:
    assert join_path("users", "u1/", "/orders") == "users/u1/orders"
    assert join_path("users", "", "orders") == "users/orders"
