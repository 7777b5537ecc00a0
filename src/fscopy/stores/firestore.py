"""
Firestore document database using the google-cloud-firestore async client.

SDK values are converted to the tagged variants of ``fscopy.documents.values``
when reading, and back when writing, so the rest of the engine never handles
SDK types.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from google.api_core.datetime_helpers import DatetimeWithNanoseconds
from google.cloud import firestore
from google.cloud.firestore_v1.base_document import BaseDocumentReference
from google.cloud.firestore_v1.base_query import FieldFilter

from fscopy.config import WhereFilter
from fscopy.documents.values import DocumentData, DocumentRef, GeoPoint, Timestamp
from fscopy.stores.interface import (
    DocumentDatabase,
    DocumentSnapshot,
    WriteBatch,
    WriteKind,
    WriteOperation,
)

logger = logging.getLogger(__name__)


class FirestoreWriteBatch(WriteBatch):
    """Queued writes replayed onto a Firestore ``AsyncWriteBatch`` at commit time."""

    def __init__(self, database: FirestoreDocumentDatabase) -> None:
        super().__init__()
        self._database = database

    async def _commit(self, operations: list[WriteOperation]) -> None:
        client = self._database.client
        sdk_batch = client.batch()
        for op in operations:
            ref = client.document(op.path)
            if op.kind is WriteKind.DELETE:
                sdk_batch.delete(ref)
            else:
                sdk_batch.set(ref, self._database.to_firestore(op.data or {}), merge=op.merge)
        await sdk_batch.commit()


class FirestoreDocumentDatabase(DocumentDatabase):
    """
    Firestore implementation of the document database.

    Credentials are resolved by the Google client library (application
    default credentials or ``GOOGLE_APPLICATION_CREDENTIALS``).

    Example:
        >>> async with FirestoreDocumentDatabase("my-project") as db:
        ...     users = await db.query("users", limit=10)
    """

    def __init__(self, project: str, *, database: str | None = None, client: Any = None) -> None:
        """
        Args:
            project: Google Cloud project ID
            database: Firestore database ID (default database if None)
            client: Preconfigured ``firestore.AsyncClient``, mainly for tests
        """
        self.name = project
        self._project = project
        if client is None:
            kwargs: dict[str, Any] = {"project": project}
            if database:
                kwargs["database"] = database
            client = firestore.AsyncClient(**kwargs)
        self._client = client

    @property
    def client(self) -> Any:
        return self._client

    async def close(self) -> None:
        if self._client is None:
            return
        result = self._client.close()
        if inspect.isawaitable(result):
            await result
        self._client = None
        logger.debug("Closed Firestore client for project %s", self._project)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_subcollections(self, document_path: str) -> list[str]:
        names = [ref.id async for ref in self._client.document(document_path).collections()]
        return sorted(names)

    def _build_query(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter],
        limit: int = 0,
    ) -> Any:
        query: Any = self._client.collection(collection_path)
        for where in filters:
            query = query.where(filter=FieldFilter(where.field, where.operator, where.value))
        if limit > 0:
            query = query.limit(limit)
        return query

    async def query(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
        limit: int = 0,
    ) -> list[DocumentSnapshot]:
        snapshots = await self._build_query(collection_path, filters, limit).get()
        return [self._to_snapshot(snapshot) for snapshot in snapshots]

    async def count(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
    ) -> int:
        results = await self._build_query(collection_path, filters).count().get()
        return int(results[0][0].value) if results and results[0] else 0

    async def get_all(self, document_paths: Iterable[str]) -> list[DocumentSnapshot]:
        paths = list(document_paths)
        if not paths:
            return []
        refs = [self._client.document(path) for path in paths]
        found: dict[str, DocumentSnapshot] = {}
        async for snapshot in self._client.get_all(refs):
            found[snapshot.reference.path] = self._to_snapshot(snapshot)
        return [found.get(path) or DocumentSnapshot.missing(path) for path in paths]

    def _to_snapshot(self, snapshot: Any) -> DocumentSnapshot:
        if not snapshot.exists:
            return DocumentSnapshot.missing(snapshot.reference.path)
        return DocumentSnapshot(
            id=snapshot.id,
            path=snapshot.reference.path,
            data=self.from_firestore(snapshot.to_dict() or {}),
            update_time=snapshot.update_time,
        )

    def batch(self) -> FirestoreWriteBatch:
        return FirestoreWriteBatch(self)

    # -------------------------------------------------------------------------
    # Value conversion
    # -------------------------------------------------------------------------

    def from_firestore(self, data: Mapping[str, Any]) -> DocumentData:
        """Convert SDK field values to tagged variants."""
        return {key: self._from_value(value) for key, value in data.items()}

    def _from_value(self, value: Any) -> Any:
        if isinstance(value, DatetimeWithNanoseconds):
            ts = Timestamp.from_datetime(value)
            return Timestamp(seconds=ts.seconds, nanoseconds=value.nanosecond)
        if isinstance(value, datetime):
            return Timestamp.from_datetime(value)
        if isinstance(value, firestore.GeoPoint):
            return GeoPoint(latitude=value.latitude, longitude=value.longitude)
        if isinstance(value, BaseDocumentReference):
            return DocumentRef(path=value.path)
        if isinstance(value, Mapping):
            return {key: self._from_value(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self._from_value(item) for item in value]
        return value

    def to_firestore(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Convert tagged variants back to SDK field values."""
        return {key: self._to_value(value) for key, value in data.items()}

    def _to_value(self, value: Any) -> Any:
        if isinstance(value, Timestamp):
            dt = datetime.fromtimestamp(value.seconds, tz=UTC)
            return DatetimeWithNanoseconds(
                dt.year,
                dt.month,
                dt.day,
                dt.hour,
                dt.minute,
                dt.second,
                nanosecond=value.nanoseconds,
                tzinfo=UTC,
            )
        if isinstance(value, GeoPoint):
            return firestore.GeoPoint(value.latitude, value.longitude)
        if isinstance(value, DocumentRef):
            return self._client.document(value.path)
        if isinstance(value, Mapping):
            return {key: self._to_value(item) for key, item in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._to_value(item) for item in value]
        return value


__all__ = ["FirestoreDocumentDatabase", "FirestoreWriteBatch"]
