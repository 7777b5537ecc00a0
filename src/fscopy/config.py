"""
Transfer configuration.

``TransferConfig`` is the immutable, validated description of one run. It is
built from defaults, an optional JSON or INI config file, and command-line
values (later sources win) by ``build_config``; ``validate_config`` then checks
the cross-field rules that must hold before any document is read.

Example:
    >>> config = TransferConfig(
    ...     collections=["users"],
    ...     source_project="prod",
    ...     dest_project="staging",
    ...     dry_run=False,
    ... )
    >>> validate_config(config)
    []
"""

from __future__ import annotations

import configparser
import json
import logging
import re
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from fscopy.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

WhereOperator = Literal["==", "!=", "<", ">", "<=", ">="]

DEFAULT_STATE_FILE = ".fscopy-state.json"
MAX_BATCH_SIZE = 500

_OPERATOR_PATTERN = re.compile(r"(==|!=|<=|>=|<|>)")
_RESERVED_ID_PATTERN = re.compile(r"^__.*__$")


class WhereFilter(BaseModel):
    """
    A field predicate applied to top-level collection queries.

    Attributes:
        field: Document field name (dotted paths allowed).
        operator: Comparison operator.
        value: Value to compare against.
    """

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    operator: WhereOperator
    value: Any = None

    def __str__(self) -> str:
        return f"{self.field} {self.operator} {self.value!r}"


class TransferConfig(BaseModel):
    """
    Immutable configuration for a single transfer run.

    Attributes:
        collections: Top-level collection paths to copy.
        include_subcollections: Recurse into subcollections of copied documents.
        dry_run: Process and count everything but write nothing.
        batch_size: Documents per write batch (1-500).
        limit: Maximum documents per top-level collection (0 = no limit).
        source_project: Source project (or database file for sqlite).
        dest_project: Destination project (or database file for sqlite).
        retries: Retries for queries and batch commits.
        where: Filters applied to top-level collections only.
        exclude: Subcollection name patterns to skip.
        merge: Merge into existing documents instead of overwriting.
        parallel: Number of top-level collections copied concurrently.
        clear: Delete destination collections before copying.
        delete_missing: Delete destination documents absent from the source.
        rename_collection: Root collection renames (source -> destination).
        id_prefix: Prefix added to destination document IDs.
        id_suffix: Suffix added to destination document IDs.
        resume: Continue from a previous run's state file.
        state_file: Path of the resumable state file.
        verify: Compare source and destination counts after the transfer.
        rate_limit: Maximum documents written per second (0 = unlimited).
        skip_oversized: Skip documents over the size limit instead of failing.
        detect_conflicts: Skip documents modified at the destination mid-batch.
        verify_integrity: Re-read written documents and compare hashes.
        max_depth: Maximum subcollection depth (0 = unlimited).
        transform: Path of a Python file defining ``transform(data, meta)``.
        transform_samples: Documents per collection used to test the
            transform in dry-run mode (-1 = all, 0 = skip).
    """

    model_config = ConfigDict(frozen=True)

    collections: list[str] = Field(default_factory=list)
    include_subcollections: bool = False
    dry_run: bool = True
    batch_size: int = Field(default=MAX_BATCH_SIZE, ge=1, le=MAX_BATCH_SIZE)
    limit: int = Field(default=0, ge=0)
    source_project: str | None = None
    dest_project: str | None = None
    retries: int = Field(default=3, ge=0)
    where: list[WhereFilter] = Field(default_factory=list)
    exclude: list[str] = Field(default_factory=list)
    merge: bool = False
    parallel: int = Field(default=1, ge=1)
    clear: bool = False
    delete_missing: bool = False
    rename_collection: dict[str, str] = Field(default_factory=dict)
    id_prefix: str | None = None
    id_suffix: str | None = None
    resume: bool = False
    state_file: str = DEFAULT_STATE_FILE
    verify: bool = False
    rate_limit: float = Field(default=0, ge=0)
    skip_oversized: bool = False
    detect_conflicts: bool = False
    verify_integrity: bool = False
    max_depth: int = Field(default=0, ge=0)
    transform: str | None = None
    transform_samples: int = Field(default=3, ge=-1)

    @field_validator("where", mode="before")
    @classmethod
    def _parse_where_strings(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [parse_where(item) if isinstance(item, str) else item for item in value]
        return value

    @property
    def modifies_ids(self) -> bool:
        """True when destination IDs differ from source IDs."""
        return bool(self.id_prefix) or bool(self.id_suffix)


def parse_where(expression: str) -> WhereFilter:
    """
    Parse a ``"field operator value"`` filter expression.

    ``true``/``false``/``null`` and numbers are converted; surrounding quotes
    are stripped from strings.

    Raises:
        ValueError: If the operator, field or value is missing.

    Example:
        >>> parse_where("age >= 18")
        WhereFilter(field='age', operator='>=', value=18)
    """
    match = _OPERATOR_PATTERN.search(expression)
    if not match:
        raise ValueError(f'Invalid where filter "{expression}": missing operator')

    field = expression[: match.start()].strip()
    raw_value = expression[match.end() :].strip()
    if not field or not raw_value:
        raise ValueError(f'Invalid where filter "{expression}": missing field or value')

    return WhereFilter(field=field, operator=match.group(0), value=_coerce_value(raw_value))


def _coerce_value(raw: str) -> Any:
    if raw == "true":
        return True
    if raw == "false":
        return False
    if raw == "null":
        return None
    try:
        return int(raw)
    except ValueError:
        pass
    try:
        return float(raw)
    except ValueError:
        pass
    return re.sub(r"^[\"']|[\"']$", "", raw)


def parse_string_list(value: str | Iterable[str] | None) -> list[str]:
    """Split a comma-separated string (or flatten a list of them), dropping blanks."""
    if not value:
        return []
    items = [value] if isinstance(value, str) else list(value)
    result: list[str] = []
    for item in items:
        result.extend(part.strip() for part in str(item).split(",") if part.strip())
    return result


def parse_rename_mapping(value: str | Iterable[str] | Mapping[str, str] | None) -> dict[str, str]:
    """
    Parse ``source:dest`` rename pairs.

    Raises:
        ValueError: If a pair has no colon or an empty side.
    """
    if not value:
        return {}
    if isinstance(value, Mapping):
        return {str(k): str(v) for k, v in value.items()}

    result: dict[str, str] = {}
    for mapping in parse_string_list(value):
        source, sep, dest = mapping.partition(":")
        if not sep:
            raise ValueError(f'Invalid rename mapping "{mapping}": missing ":"')
        source, dest = source.strip(), dest.strip()
        if not source or not dest:
            raise ValueError(f'Invalid rename mapping "{mapping}": empty source or destination')
        result[source] = dest
    return result


def parse_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes", "on")
    return bool(value)


# =============================================================================
# Validation
# =============================================================================


def validate_document_id(value: str, kind: str = "collection") -> str | None:
    """Return an error message if ``value`` is not a valid collection or document ID."""
    if not value:
        return f"{kind} name cannot be empty"
    if value in (".", ".."):
        return f"{kind} name cannot be '.' or '..'"
    if _RESERVED_ID_PATTERN.match(value):
        return f"{kind} name cannot match pattern '__*__' (reserved)"
    return None


def validate_collection_path(path: str) -> list[str]:
    """
    Validate every segment of a collection path.

    Even segments are collection names, odd segments document IDs
    (``users/123/orders``).
    """
    errors = []
    for index, segment in enumerate(path.split("/")):
        kind = "collection" if index % 2 == 0 else "document"
        error = validate_document_id(segment, kind)
        if error:
            errors.append(f'Invalid {kind} in path "{path}": {error}')
    return errors


def validate_config(config: TransferConfig) -> list[str]:
    """
    Check cross-field rules that must hold before a transfer starts.

    Returns:
        Error messages, empty when the configuration is usable.
    """
    errors: list[str] = []

    if not config.source_project:
        errors.append("Source project is required (--source-project or in config file)")
    if not config.dest_project:
        errors.append("Destination project is required (--dest-project or in config file)")
    if (
        config.source_project
        and config.dest_project
        and config.source_project == config.dest_project
        and not config.rename_collection
        and config.id_prefix is None
        and config.id_suffix is None
    ):
        errors.append(
            "Source and destination projects are the same. "
            "Use --rename-collection or --id-prefix/--id-suffix to avoid overwriting data."
        )

    if not config.collections:
        errors.append("At least one collection is required (-c or --collections)")
    for collection in config.collections:
        errors.extend(validate_collection_path(collection))

    for source, dest in config.rename_collection.items():
        errors.extend(validate_collection_path(dest))
        if "/" in source or "/" in dest:
            errors.append(f'Rename mapping "{source}:{dest}" must name root collections only')

    return errors


def ensure_valid_config(config: TransferConfig) -> TransferConfig:
    """
    Validate a configuration, raising on the first problem set.

    Raises:
        ConfigurationError: If ``validate_config`` reports any error.
    """
    errors = validate_config(config)
    if errors:
        raise ConfigurationError(errors)
    return config


# =============================================================================
# Config files
# =============================================================================

# config file key -> TransferConfig field
_FILE_KEYS: dict[str, str] = {
    "sourceProject": "source_project",
    "source": "source_project",
    "destProject": "dest_project",
    "dest": "dest_project",
    "collections": "collections",
    "includeSubcollections": "include_subcollections",
    "dryRun": "dry_run",
    "batchSize": "batch_size",
    "limit": "limit",
    "retries": "retries",
    "where": "where",
    "exclude": "exclude",
    "merge": "merge",
    "parallel": "parallel",
    "clear": "clear",
    "deleteMissing": "delete_missing",
    "renameCollection": "rename_collection",
    "idPrefix": "id_prefix",
    "idSuffix": "id_suffix",
    "resume": "resume",
    "stateFile": "state_file",
    "verify": "verify",
    "rateLimit": "rate_limit",
    "skipOversized": "skip_oversized",
    "detectConflicts": "detect_conflicts",
    "verifyIntegrity": "verify_integrity",
    "maxDepth": "max_depth",
    "transform": "transform",
    "transformSamples": "transform_samples",
}

_BOOL_FIELDS = {
    "include_subcollections",
    "dry_run",
    "merge",
    "clear",
    "delete_missing",
    "resume",
    "verify",
    "skip_oversized",
    "detect_conflicts",
    "verify_integrity",
}
_INT_FIELDS = {"batch_size", "limit", "retries", "parallel", "max_depth", "transform_samples"}
_LIST_FIELDS = {"collections", "exclude"}


def _normalize(field: str, value: Any) -> Any:
    if field in _BOOL_FIELDS:
        return parse_boolean(value)
    if field in _INT_FIELDS:
        return int(value)
    if field == "rate_limit":
        return float(value)
    if field in _LIST_FIELDS:
        return parse_string_list(value)
    if field == "where":
        expressions = parse_string_list(value) if isinstance(value, str) else list(value)
        return [parse_where(item) if isinstance(item, str) else item for item in expressions]
    if field == "rename_collection":
        return parse_rename_mapping(value)
    return value


def _collect_file_values(raw: Mapping[str, Any], source: str) -> dict[str, Any]:
    values: dict[str, Any] = {}
    for key, value in raw.items():
        field = _FILE_KEYS.get(key) or (key if key in TransferConfig.model_fields else None)
        if field is None:
            logger.warning("Ignoring unknown config key %r in %s", key, source)
            continue
        if value is None or value == "":
            continue
        try:
            values[field] = _normalize(field, value)
        except ValueError as e:
            raise ConfigurationError([f"{source}: {key}: {e}"]) from e
    return values


def load_config_file(path: str | Path) -> dict[str, Any]:
    """
    Load configuration overrides from a JSON or INI file.

    Files ending in ``.json`` are parsed as JSON objects with camelCase keys.
    Anything else is read as INI with ``[projects]`` (``source``, ``dest``),
    ``[transfer]`` and ``[options]`` sections.

    Args:
        path: Config file path.

    Returns:
        Mapping of ``TransferConfig`` field names to values.

    Raises:
        ConfigurationError: If the file is missing or malformed.
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError([f"Config file not found: {path}"])

    content = path.read_text(encoding="utf-8")

    if path.suffix.lower() == ".json":
        try:
            raw = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigurationError([f"Invalid JSON in {path}: {e}"]) from e
        if not isinstance(raw, dict):
            raise ConfigurationError([f"{path} must contain a JSON object"])
        return _collect_file_values(raw, str(path))

    parser = configparser.ConfigParser()
    # keep camelCase keys
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        parser.read_string(content, source=str(path))
    except configparser.Error as e:
        raise ConfigurationError([f"Invalid INI in {path}: {e}"]) from e

    raw_ini: dict[str, Any] = {}
    for section in parser.sections():
        raw_ini.update(parser.items(section))
    return _collect_file_values(raw_ini, str(path))


def build_config(
    file_values: Mapping[str, Any] | None = None,
    cli_values: Mapping[str, Any] | None = None,
) -> TransferConfig:
    """
    Merge defaults, config file values and CLI values into a TransferConfig.

    CLI values that are ``None`` (option not given) do not override the file.

    Raises:
        ConfigurationError: If the merged values fail model validation.
    """
    merged: dict[str, Any] = dict(file_values or {})
    for key, value in (cli_values or {}).items():
        if value is None:
            continue
        # empty multi-value CLI options mean "not given"
        if isinstance(value, (list, tuple, dict)) and not value:
            continue
        merged[key] = value

    try:
        return TransferConfig(**merged)
    except ValidationError as e:
        errors = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
        ]
        raise ConfigurationError(errors) from e


__all__ = [
    "DEFAULT_STATE_FILE",
    "MAX_BATCH_SIZE",
    "WhereFilter",
    "WhereOperator",
    "TransferConfig",
    "parse_where",
    "parse_string_list",
    "parse_rename_mapping",
    "parse_boolean",
    "validate_document_id",
    "validate_collection_path",
    "validate_config",
    "ensure_valid_config",
    "load_config_file",
    "build_config",
]
