"""
In-memory document database.

Useful for testing, dry runs against fixtures and development. All data is
lost when the process terminates.
"""

import asyncio
import copy
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from fscopy.config import WhereFilter
from fscopy.documents.values import DocumentData
from fscopy.stores.interface import (
    DocumentDatabase,
    DocumentSnapshot,
    WriteBatch,
    WriteKind,
    WriteOperation,
    deep_merge,
    matches_filters,
    split_document_path,
)


@dataclass
class _StoredDocument:
    data: DocumentData
    update_time: int


class InMemoryWriteBatch(WriteBatch):
    """Write batch applied to an ``InMemoryDocumentDatabase`` under its lock."""

    def __init__(self, database: "InMemoryDocumentDatabase") -> None:
        super().__init__()
        self._database = database

    async def _commit(self, operations: list[WriteOperation]) -> None:
        await self._database._apply(operations)


class InMemoryDocumentDatabase(DocumentDatabase):
    """
    Dict-backed implementation of the document database.

    Every write bumps a global counter that is used as the document's
    ``update_time``, so concurrent modifications are observable by conflict
    detection.

    Example:
        >>> db = InMemoryDocumentDatabase()
        >>> db.put("users/u1", {"name": "Ada"})
        >>> db.put("users/u1/orders/o1", {"total": 12})
        >>> [doc.id for doc in await db.query("users")]
        ['u1']

    Attributes:
        _collections: collection path -> document ID -> stored document
        _clock: Last assigned update time
        commit_count: Number of successfully committed non-empty batches
    """

    def __init__(self, name: str = "memory") -> None:
        self.name = name
        self._collections: dict[str, dict[str, _StoredDocument]] = {}
        self._clock = 0
        self._lock = asyncio.Lock()
        self.commit_count = 0

    # -------------------------------------------------------------------------
    # Seeding and inspection helpers (synchronous)
    # -------------------------------------------------------------------------

    def put(self, document_path: str, data: Mapping[str, Any]) -> None:
        """Create or overwrite a document without going through a batch."""
        collection_path, doc_id = split_document_path(document_path)
        self._clock += 1
        self._collections.setdefault(collection_path, {})[doc_id] = _StoredDocument(
            copy.deepcopy(dict(data)), self._clock
        )

    def get(self, document_path: str) -> DocumentData | None:
        """Return a copy of a document's data, or None if it does not exist."""
        collection_path, doc_id = split_document_path(document_path)
        stored = self._collections.get(collection_path, {}).get(doc_id)
        return copy.deepcopy(stored.data) if stored else None

    def document_ids(self, collection_path: str) -> list[str]:
        return sorted(self._collections.get(collection_path, {}))

    def dump(self) -> dict[str, DocumentData]:
        """Every document keyed by path, for whole-database comparisons."""
        return {
            f"{collection_path}/{doc_id}": copy.deepcopy(stored.data)
            for collection_path, documents in self._collections.items()
            for doc_id, stored in documents.items()
        }

    # -------------------------------------------------------------------------
    # DocumentDatabase
    # -------------------------------------------------------------------------

    async def list_subcollections(self, document_path: str) -> list[str]:
        prefix = document_path + "/"
        names = {
            path[len(prefix) :]
            for path, documents in self._collections.items()
            if documents and path.startswith(prefix) and "/" not in path[len(prefix) :]
        }
        return sorted(names)

    async def query(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
        limit: int = 0,
    ) -> list[DocumentSnapshot]:
        documents = self._collections.get(collection_path, {})
        results = []
        for doc_id in sorted(documents):
            stored = documents[doc_id]
            if not matches_filters(stored.data, filters):
                continue
            results.append(self._snapshot(collection_path, doc_id, stored))
            if limit and len(results) >= limit:
                break
        return results

    async def count(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
    ) -> int:
        documents = self._collections.get(collection_path, {})
        return sum(1 for stored in documents.values() if matches_filters(stored.data, filters))

    async def get_all(self, document_paths: Iterable[str]) -> list[DocumentSnapshot]:
        results = []
        for path in document_paths:
            collection_path, doc_id = split_document_path(path)
            stored = self._collections.get(collection_path, {}).get(doc_id)
            if stored is None:
                results.append(DocumentSnapshot.missing(path))
            else:
                results.append(self._snapshot(collection_path, doc_id, stored))
        return results

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    async def _apply(self, operations: list[WriteOperation]) -> None:
        # validate every path before mutating anything
        targets = [split_document_path(op.path) for op in operations]

        async with self._lock:
            for op, (collection_path, doc_id) in zip(operations, targets, strict=True):
                documents = self._collections.setdefault(collection_path, {})
                if op.kind is WriteKind.DELETE:
                    documents.pop(doc_id, None)
                    continue

                data = copy.deepcopy(op.data or {})
                existing = documents.get(doc_id)
                if op.merge and existing is not None:
                    data = deep_merge(copy.deepcopy(existing.data), data)
                self._clock += 1
                documents[doc_id] = _StoredDocument(data, self._clock)
            self.commit_count += 1

    @staticmethod
    def _snapshot(collection_path: str, doc_id: str, stored: _StoredDocument) -> DocumentSnapshot:
        return DocumentSnapshot(
            id=doc_id,
            path=f"{collection_path}/{doc_id}",
            data=copy.deepcopy(stored.data),
            update_time=stored.update_time,
        )


__all__ = ["InMemoryDocumentDatabase", "InMemoryWriteBatch"]
