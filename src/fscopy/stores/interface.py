"""
Document database interface and core data structures.

The transfer engine talks to the source and destination only through this
contract:

- DocumentSnapshot: A document read from a collection
- WriteOperation: One queued write in a batch
- WriteBatch: Queued writes committed atomically
- DocumentDatabase: Abstract base class for database endpoints

Paths are slash-separated: collection paths have an odd number of segments
(``users``, ``users/123/orders``), document paths an even number
(``users/123``).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from fscopy.config import WhereFilter
from fscopy.documents.values import DocumentData


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    A document as read from a database.

    Attributes:
        id: Document ID (last path segment)
        path: Full document path
        data: Field map (empty when the document does not exist)
        exists: False for placeholders returned by ``get_all`` for missing documents
        update_time: Opaque version that changes on every write, None if unknown
    """

    id: str
    path: str
    data: DocumentData = field(default_factory=dict)
    exists: bool = True
    update_time: Any = None

    @property
    def collection_path(self) -> str:
        return self.path.rsplit("/", 1)[0]

    @classmethod
    def missing(cls, path: str) -> DocumentSnapshot:
        """Placeholder for a document that does not exist."""
        return cls(id=path.rsplit("/", 1)[-1], path=path, data={}, exists=False)


class WriteKind(Enum):
    SET = "set"
    DELETE = "delete"


@dataclass(frozen=True)
class WriteOperation:
    """A queued write: set (optionally merging) or delete of one document."""

    kind: WriteKind
    path: str
    data: DocumentData | None = None
    merge: bool = False


class WriteBatch(ABC):
    """
    Writes queued and committed as one atomic unit.

    Implementations only provide ``_commit``; queuing is shared.

    Example:
        >>> batch = database.batch()
        >>> batch.set("users/u1", {"name": "Ada"})
        >>> batch.delete("users/u2")
        >>> await batch.commit()
    """

    def __init__(self) -> None:
        self._operations: list[WriteOperation] = []
        self._committed = False

    def set(self, document_path: str, data: Mapping[str, Any], merge: bool = False) -> WriteBatch:
        """Queue a full overwrite (or a merge) of a document."""
        self._ensure_open()
        self._operations.append(
            WriteOperation(WriteKind.SET, document_path, dict(data), merge=merge)
        )
        return self

    def delete(self, document_path: str) -> WriteBatch:
        """Queue a document deletion."""
        self._ensure_open()
        self._operations.append(WriteOperation(WriteKind.DELETE, document_path))
        return self

    @property
    def operations(self) -> list[WriteOperation]:
        return list(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    async def commit(self) -> None:
        """
        Apply every queued write atomically.

        A batch may be retried after a failed commit; it is closed only after
        a successful one.

        Raises:
            RuntimeError: If the batch was already committed
        """
        self._ensure_open()
        if self._operations:
            await self._commit(list(self._operations))
        self._committed = True

    def _ensure_open(self) -> None:
        if self._committed:
            raise RuntimeError("Write batch has already been committed")

    @abstractmethod
    async def _commit(self, operations: list[WriteOperation]) -> None:
        pass


class DocumentDatabase(ABC):
    """
    Abstract base class for document database endpoints.

    Implementations must be async context managers that release their
    connection on exit, so a transfer can guarantee both endpoints are
    closed on every path (see ``open_databases``).
    """

    name: str = "database"

    @abstractmethod
    async def list_subcollections(self, document_path: str) -> list[str]:
        """
        List the names of a document's subcollections.

        Args:
            document_path: Path of the parent document

        Returns:
            Subcollection names (last path segment only), sorted
        """
        pass

    @abstractmethod
    async def query(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
        limit: int = 0,
    ) -> list[DocumentSnapshot]:
        """
        Read the documents of a collection.

        Args:
            collection_path: Collection to read
            filters: Predicates every returned document must satisfy
            limit: Maximum number of documents (0 = no limit)

        Returns:
            Matching documents ordered by document ID
        """
        pass

    @abstractmethod
    async def count(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
    ) -> int:
        """Count the documents of a collection matching ``filters``."""
        pass

    @abstractmethod
    async def get_all(self, document_paths: Iterable[str]) -> list[DocumentSnapshot]:
        """
        Read documents by path.

        Returns:
            One snapshot per requested path, in request order; missing
            documents have ``exists=False``
        """
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Create an empty write batch."""
        pass

    async def close(self) -> None:
        """Release the connection. Safe to call multiple times."""
        return None

    async def __aenter__(self) -> DocumentDatabase:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        await self.close()


# =============================================================================
# Shared helpers for implementations that filter in Python
# =============================================================================

_MISSING = object()


def get_field(data: Mapping[str, Any], field_path: str) -> Any:
    """Resolve a dotted field path, returning a sentinel when absent."""
    value: Any = data
    for part in field_path.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def matches_filter(data: Mapping[str, Any], where: WhereFilter) -> bool:
    """
    Evaluate one filter against a document.

    Documents missing the field never match. Ordering comparisons between
    values of different types do not match.
    """
    value = get_field(data, where.field)
    if value is _MISSING:
        return False

    if where.operator == "==":
        return bool(value == where.value)
    if where.operator == "!=":
        return bool(value != where.value)

    try:
        if where.operator == "<":
            return bool(value < where.value)
        if where.operator == "<=":
            return bool(value <= where.value)
        if where.operator == ">":
            return bool(value > where.value)
        if where.operator == ">=":
            return bool(value >= where.value)
    except TypeError:
        return False
    raise ValueError(f"Unsupported operator: {where.operator}")


def matches_filters(data: Mapping[str, Any], filters: Sequence[WhereFilter]) -> bool:
    return all(matches_filter(data, where) for where in filters)


def split_document_path(document_path: str) -> tuple[str, str]:
    """
    Split a document path into collection path and document ID.

    Raises:
        ValueError: If the path does not name a document
    """
    segments = document_path.split("/")
    if len(segments) < 2 or len(segments) % 2 != 0 or not all(segments):
        raise ValueError(f"Not a document path: {document_path!r}")
    return "/".join(segments[:-1]), segments[-1]


def deep_merge(target: dict[str, Any], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``updates`` into ``target`` recursively (maps merge, other values replace)."""
    for key, value in updates.items():
        existing = target.get(key)
        if isinstance(value, Mapping) and isinstance(existing, dict):
            deep_merge(existing, value)
        else:
            target[key] = value
    return target


__all__ = [
    "DocumentSnapshot",
    "WriteKind",
    "WriteOperation",
    "WriteBatch",
    "DocumentDatabase",
    "get_field",
    "matches_filter",
    "matches_filters",
    "split_document_path",
    "deep_merge",
]
