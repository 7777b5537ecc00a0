"""
Unit tests for the shared store helpers: filters, paths and merging.
"""

import pytest

from fscopy.config import WhereFilter, parse_where
from fscopy.stores.interface import (
    DocumentSnapshot,
    deep_merge,
    get_field,
    matches_filter,
    matches_filters,
    split_document_path,
)

DOC = {"status": "active", "age": 30, "profile": {"city": "Paris"}, "score": None}


class TestFilters:
    """Tests for matches_filter/matches_filters."""

    @pytest.mark.parametrize(
        ("expression", "expected"),
        [
            ("status == active", True),
            ("status != active", False),
            ("age > 18", True),
            ("age >= 30", True),
            ("age < 30", False),
            ("age <= 30", True),
            ("profile.city == Paris", True),
            ("score == null", True),
        ],
    )
    def test_operators(self, expression: str, expected: bool) -> None:
        assert matches_filter(DOC, parse_where(expression)) is expected

    def test_missing_field_never_matches(self) -> None:
        assert not matches_filter(DOC, parse_where("missing != 1"))
        assert not matches_filter(DOC, parse_where("profile.zip == 1"))

    def test_type_mismatch_does_not_match(self) -> None:
        assert not matches_filter(DOC, WhereFilter(field="status", operator=">", value=3))

    def test_all_filters_must_match(self) -> None:
        filters = [parse_where("status == active"), parse_where("age > 40")]
        assert not matches_filters(DOC, filters)
        assert matches_filters(DOC, filters[:1])
        assert matches_filters(DOC, [])

    def test_get_field_dotted(self) -> None:
        assert get_field(DOC, "profile.city") == "Paris"


class TestPaths:
    """Tests for split_document_path and DocumentSnapshot."""

    def test_split(self) -> None:
        assert split_document_path("users/u1") == ("users", "u1")
        assert split_document_path("users/u1/orders/o1") == ("users/u1/orders", "o1")

    @pytest.mark.parametrize("path", ["users", "users/u1/orders", "users//", ""])
    def test_split_rejects_collection_paths(self, path: str) -> None:
        with pytest.raises(ValueError):
            split_document_path(path)

    def test_snapshot_collection_path(self) -> None:
        snapshot = DocumentSnapshot(id="o1", path="users/u1/orders/o1")
        assert snapshot.collection_path == "users/u1/orders"

    def test_missing_snapshot(self) -> None:
        snapshot = DocumentSnapshot.missing("users/u9")
        assert snapshot.id == "u9"
        assert not snapshot.exists
        assert snapshot.data == {}


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_maps_merge(self) -> None:
        target = {"a": 1, "m": {"x": 1, "y": 2}}
        assert deep_merge(target, {"m": {"y": 3, "z": 4}, "b": 2}) == {
            "a": 1,
            "b": 2,
            "m": {"x": 1, "y": 3, "z": 4},
        }

    def test_non_map_values_replace(self) -> None:
        assert deep_merge({"m": {"x": 1}}, {"m": [1]}) == {"m": [1]}
