"""
Unit tests for transfer configuration.

Tests cover:
- TransferConfig defaults and bounds
- parse_where, parse_string_list, parse_rename_mapping, parse_boolean
- validate_config rules
- load_config_file for JSON and INI
- build_config precedence
"""

import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from fscopy.config import (
    DEFAULT_STATE_FILE,
    TransferConfig,
    WhereFilter,
    build_config,
    ensure_valid_config,
    load_config_file,
    parse_boolean,
    parse_rename_mapping,
    parse_string_list,
    parse_where,
    validate_collection_path,
    validate_config,
    validate_document_id,
)
from fscopy.exceptions import ConfigurationError


def _valid(**overrides) -> TransferConfig:
    values = {"collections": ["users"], "source_project": "a", "dest_project": "b"}
    values.update(overrides)
    return TransferConfig(**values)


class TestTransferConfig:
    """Tests for TransferConfig defaults and validation."""

    def test_defaults(self) -> None:
        config = TransferConfig()
        assert config.dry_run is True
        assert config.batch_size == 500
        assert config.limit == 0
        assert config.retries == 3
        assert config.parallel == 1
        assert config.state_file == DEFAULT_STATE_FILE
        assert config.transform_samples == 3
        assert config.max_depth == 0

    @pytest.mark.parametrize("batch_size", [0, 501])
    def test_batch_size_bounds(self, batch_size: int) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(batch_size=batch_size)

    def test_is_frozen(self) -> None:
        config = TransferConfig()
        with pytest.raises(ValidationError):
            config.dry_run = False  # type: ignore[misc]

    def test_where_strings_are_parsed(self) -> None:
        config = TransferConfig(where=["age >= 18", "status == 'active'"])
        assert config.where == [
            WhereFilter(field="age", operator=">=", value=18),
            WhereFilter(field="status", operator="==", value="active"),
        ]

    def test_modifies_ids(self) -> None:
        assert not TransferConfig().modifies_ids
        assert TransferConfig(id_prefix="bk_").modifies_ids
        assert TransferConfig(id_suffix="_v2").modifies_ids


class TestParseWhere:
    """Tests for parse_where."""

    @pytest.mark.parametrize(
        ("expression", "field", "operator", "value"),
        [
            ("status == active", "status", "==", "active"),
            ("age>=18", "age", ">=", 18),
            ("score < 1.5", "score", "<", 1.5),
            ("deleted != true", "deleted", "!=", True),
            ("archived == false", "archived", "==", False),
            ("parent == null", "parent", "==", None),
            ('name == "Ada Lovelace"', "name", "==", "Ada Lovelace"),
            ("profile.city == Paris", "profile.city", "==", "Paris"),
            ("n <= -3", "n", "<=", -3),
            ("n > 2", "n", ">", 2),
        ],
    )
    def test_parses_expression(self, expression: str, field: str, operator: str, value) -> None:
        where = parse_where(expression)
        assert where.field == field
        assert where.operator == operator
        assert where.value == value
        assert type(where.value) is type(value)

    @pytest.mark.parametrize("expression", ["status active", "== active", "status =="])
    def test_rejects_malformed_expression(self, expression: str) -> None:
        with pytest.raises(ValueError, match="Invalid where filter"):
            parse_where(expression)


class TestParsers:
    """Tests for list, rename and boolean parsing."""

    def test_string_list_from_comma_string(self) -> None:
        assert parse_string_list("users, orders,,products ") == ["users", "orders", "products"]

    def test_string_list_from_repeated_values(self) -> None:
        assert parse_string_list(["users,orders", "products"]) == ["users", "orders", "products"]

    def test_string_list_empty(self) -> None:
        assert parse_string_list(None) == []
        assert parse_string_list("") == []

    def test_rename_mapping(self) -> None:
        assert parse_rename_mapping("users:users_bk, orders:orders_bk") == {
            "users": "users_bk",
            "orders": "orders_bk",
        }

    def test_rename_mapping_from_dict(self) -> None:
        assert parse_rename_mapping({"a": "b"}) == {"a": "b"}

    @pytest.mark.parametrize("value", ["users", "users:", ":dest"])
    def test_rename_mapping_rejects_bad_pairs(self, value: str) -> None:
        with pytest.raises(ValueError, match="Invalid rename mapping"):
            parse_rename_mapping(value)

    @pytest.mark.parametrize(
        ("value", "expected"),
        [("true", True), ("YES", True), ("1", True), ("on", True), ("false", False), ("", False)],
    )
    def test_parse_boolean(self, value: str, expected: bool) -> None:
        assert parse_boolean(value) is expected


class TestValidation:
    """Tests for validate_config and path validation."""

    def test_valid_config_has_no_errors(self) -> None:
        assert validate_config(_valid()) == []

    def test_missing_projects(self) -> None:
        errors = validate_config(TransferConfig(collections=["users"]))
        assert any("Source project is required" in e for e in errors)
        assert any("Destination project is required" in e for e in errors)

    def test_missing_collections(self) -> None:
        errors = validate_config(_valid(collections=[]))
        assert any("At least one collection" in e for e in errors)

    def test_same_project_requires_rename_or_id_change(self) -> None:
        errors = validate_config(_valid(dest_project="a"))
        assert any("same" in e for e in errors)
        assert validate_config(_valid(dest_project="a", id_prefix="copy_")) == []
        assert validate_config(_valid(dest_project="a", rename_collection={"users": "u2"})) == []

    @pytest.mark.parametrize("segment", ["", ".", "..", "__reserved__"])
    def test_invalid_ids(self, segment: str) -> None:
        assert validate_document_id(segment) is not None

    def test_valid_id(self) -> None:
        assert validate_document_id("users") is None

    def test_collection_path_segments(self) -> None:
        assert validate_collection_path("users/123/orders") == []
        errors = validate_collection_path("users/__x__/orders")
        assert len(errors) == 1
        assert "document" in errors[0]

    def test_rename_must_target_root_collections(self) -> None:
        errors = validate_config(_valid(rename_collection={"users": "a/b/c"}))
        assert any("root collections" in e for e in errors)

    def test_ensure_valid_config_raises(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            ensure_valid_config(TransferConfig())
        assert len(exc_info.value.errors) >= 3


class TestConfigFiles:
    """Tests for load_config_file and build_config."""

    def test_load_json(self, tmp_path: Path) -> None:
        path = tmp_path / "transfer.json"
        path.write_text(
            json.dumps(
                {
                    "sourceProject": "prod",
                    "destProject": "staging",
                    "collections": ["users", "orders"],
                    "includeSubcollections": True,
                    "batchSize": 100,
                    "where": ["status == active"],
                    "renameCollection": {"users": "users_bk"},
                    "rateLimit": 50,
                }
            )
        )

        values = load_config_file(path)

        assert values["source_project"] == "prod"
        assert values["dest_project"] == "staging"
        assert values["collections"] == ["users", "orders"]
        assert values["include_subcollections"] is True
        assert values["batch_size"] == 100
        assert values["where"] == [WhereFilter(field="status", operator="==", value="active")]
        assert values["rename_collection"] == {"users": "users_bk"}
        assert values["rate_limit"] == 50.0

    def test_load_ini(self, tmp_path: Path) -> None:
        path = tmp_path / "transfer.ini"
        path.write_text(
            "[projects]\n"
            "source = prod\n"
            "dest = staging\n"
            "\n"
            "[transfer]\n"
            "collections = users, orders\n"
            "includeSubcollections = true\n"
            "dryRun = false\n"
            "batchSize = 250\n"
            "limit = 0\n"
            "\n"
            "[options]\n"
            "where = age >= 18\n"
            "exclude = logs, temp*\n"
            "renameCollection = users:users_bk\n"
            "idPrefix = \n"
        )

        values = load_config_file(path)

        assert values["source_project"] == "prod"
        assert values["dest_project"] == "staging"
        assert values["collections"] == ["users", "orders"]
        assert values["include_subcollections"] is True
        assert values["dry_run"] is False
        assert values["batch_size"] == 250
        assert values["where"] == [WhereFilter(field="age", operator=">=", value=18)]
        assert values["exclude"] == ["logs", "temp*"]
        assert values["rename_collection"] == {"users": "users_bk"}
        assert "id_prefix" not in values

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigurationError, match="not found"):
            load_config_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        with pytest.raises(ConfigurationError, match="Invalid JSON"):
            load_config_file(path)

    def test_invalid_where_in_file(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"where": ["nope"]}))
        with pytest.raises(ConfigurationError, match="where"):
            load_config_file(path)

    def test_cli_values_override_file_values(self) -> None:
        config = build_config(
            {"source_project": "file-src", "batch_size": 100, "collections": ["users"]},
            {"source_project": "cli-src", "batch_size": None, "collections": []},
        )
        assert config.source_project == "cli-src"
        assert config.batch_size == 100
        assert config.collections == ["users"]

    def test_build_config_reports_model_errors(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            build_config({}, {"batch_size": 9999})
        assert any("batch_size" in e for e in exc_info.value.errors)
