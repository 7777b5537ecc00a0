"""
SQLite document database.

Stores documents from any collection depth in a single table, using aiosqlite
for async access. Suitable for local copies, fixtures and offline testing of
transfers:

    documents(collection_path, doc_id, data, update_time)

``data`` holds the document's tagged JSON form (see ``fscopy.documents.codec``)
and ``update_time`` a database-wide increasing counter.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Iterable, Sequence
from typing import Any

import aiosqlite

from fscopy.config import WhereFilter
from fscopy.documents.codec import decode_document, encode_document
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

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection_path TEXT NOT NULL,
    doc_id TEXT NOT NULL,
    data TEXT NOT NULL,
    update_time INTEGER NOT NULL,
    PRIMARY KEY (collection_path, doc_id)
);
"""


class SQLiteWriteBatch(WriteBatch):
    """Write batch applied in a single SQLite transaction."""

    def __init__(self, database: SQLiteDocumentDatabase) -> None:
        super().__init__()
        self._database = database

    async def _commit(self, operations: list[WriteOperation]) -> None:
        await self._database._apply(operations)


class SQLiteDocumentDatabase(DocumentDatabase):
    """
    SQLite implementation of the document database.

    Filters are evaluated in Python after reading the collection ordered by
    document ID, so any field path and operator behave exactly as in the
    in-memory database.

    Attributes:
        _database: Path to SQLite file or ':memory:' for in-memory database
        _busy_timeout: Timeout in ms for busy database
        _connection: The aiosqlite connection (set after connect)

    Example:
        >>> async with SQLiteDocumentDatabase("backup.db") as db:
        ...     docs = await db.query("users")
    """

    def __init__(self, database: str, *, busy_timeout: int = 5000) -> None:
        """
        Initialize the SQLite document database.

        Args:
            database: Path to SQLite database file or ':memory:' for in-memory
            busy_timeout: Timeout in milliseconds when database is locked (default: 5000)
        """
        self.name = database
        self._database = database
        self._busy_timeout = busy_timeout
        self._connection: aiosqlite.Connection | None = None
        self._write_lock = asyncio.Lock()

    async def __aenter__(self) -> SQLiteDocumentDatabase:
        """Open the connection and create the schema if needed."""
        await self.initialize()
        return self

    async def _connect(self) -> None:
        if self._connection is not None:
            return

        self._connection = await aiosqlite.connect(self._database)
        await self._connection.execute(f"PRAGMA busy_timeout = {self._busy_timeout}")
        self._connection.row_factory = aiosqlite.Row

        logger.debug(
            "Connected to SQLite database: %s (busy_timeout=%d)",
            self._database,
            self._busy_timeout,
        )

    async def initialize(self) -> None:
        """
        Connect and create the documents table.

        Idempotent, safe to call multiple times.
        """
        await self._connect()
        conn = self._ensure_connected()
        await conn.executescript(_SCHEMA)
        await conn.commit()

    async def close(self) -> None:
        """Close the database connection. Safe to call multiple times."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.debug("Closed SQLite database connection: %s", self._database)

    def _ensure_connected(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError(
                "Not connected to database. Use 'async with database:' or call 'initialize()' first."
            )
        return self._connection

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def list_subcollections(self, document_path: str) -> list[str]:
        conn = self._ensure_connected()
        prefix = document_path + "/"
        cursor = await conn.execute(
            """
            SELECT DISTINCT collection_path FROM documents
            WHERE substr(collection_path, 1, ?) = ?
            """,
            (len(prefix), prefix),
        )
        rows = await cursor.fetchall()
        await cursor.close()

        names = set()
        for row in rows:
            rest = row["collection_path"][len(prefix) :]
            if rest and "/" not in rest:
                names.add(rest)
        return sorted(names)

    async def query(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
        limit: int = 0,
    ) -> list[DocumentSnapshot]:
        results = []
        async for snapshot in self._iter_collection(collection_path):
            if not matches_filters(snapshot.data, filters):
                continue
            results.append(snapshot)
            if limit and len(results) >= limit:
                break
        return results

    async def count(
        self,
        collection_path: str,
        filters: Sequence[WhereFilter] = (),
    ) -> int:
        conn = self._ensure_connected()
        if not filters:
            cursor = await conn.execute(
                "SELECT COUNT(*) AS n FROM documents WHERE collection_path = ?",
                (collection_path,),
            )
            row = await cursor.fetchone()
            await cursor.close()
            return int(row["n"]) if row else 0
        return len(await self.query(collection_path, filters))

    async def get_all(self, document_paths: Iterable[str]) -> list[DocumentSnapshot]:
        conn = self._ensure_connected()
        results = []
        for path in document_paths:
            collection_path, doc_id = split_document_path(path)
            cursor = await conn.execute(
                """
                SELECT doc_id, data, update_time FROM documents
                WHERE collection_path = ? AND doc_id = ?
                """,
                (collection_path, doc_id),
            )
            row = await cursor.fetchone()
            await cursor.close()
            if row is None:
                results.append(DocumentSnapshot.missing(path))
            else:
                results.append(self._row_to_snapshot(collection_path, row))
        return results

    async def _iter_collection(self, collection_path: str) -> AsyncIterator[DocumentSnapshot]:
        conn = self._ensure_connected()
        async with conn.execute(
            """
            SELECT doc_id, data, update_time FROM documents
            WHERE collection_path = ?
            ORDER BY doc_id
            """,
            (collection_path,),
        ) as cursor:
            async for row in cursor:
                yield self._row_to_snapshot(collection_path, row)

    @staticmethod
    def _row_to_snapshot(collection_path: str, row: aiosqlite.Row) -> DocumentSnapshot:
        return DocumentSnapshot(
            id=row["doc_id"],
            path=f"{collection_path}/{row['doc_id']}",
            data=decode_document(json.loads(row["data"])),
            update_time=row["update_time"],
        )

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def batch(self) -> SQLiteWriteBatch:
        return SQLiteWriteBatch(self)

    async def put(self, document_path: str, data: dict[str, Any]) -> None:
        """Create or overwrite a single document."""
        batch = self.batch()
        batch.set(document_path, data)
        await batch.commit()

    async def _apply(self, operations: list[WriteOperation]) -> None:
        conn = self._ensure_connected()
        targets = [split_document_path(op.path) for op in operations]

        async with self._write_lock:
            await self._apply_locked(conn, operations, targets)

    async def _apply_locked(
        self,
        conn: aiosqlite.Connection,
        operations: list[WriteOperation],
        targets: list[tuple[str, str]],
    ) -> None:
        try:
            cursor = await conn.execute(
                "SELECT COALESCE(MAX(update_time), 0) AS t FROM documents"
            )
            row = await cursor.fetchone()
            await cursor.close()
            clock = int(row["t"]) if row else 0

            for op, (collection_path, doc_id) in zip(operations, targets, strict=True):
                if op.kind is WriteKind.DELETE:
                    await conn.execute(
                        "DELETE FROM documents WHERE collection_path = ? AND doc_id = ?",
                        (collection_path, doc_id),
                    )
                    continue

                data = dict(op.data or {})
                if op.merge:
                    existing = await self.get_all([op.path])
                    if existing[0].exists:
                        data = deep_merge(dict(existing[0].data), data)

                clock += 1
                await conn.execute(
                    """
                    INSERT INTO documents (collection_path, doc_id, data, update_time)
                    VALUES (?, ?, ?, ?)
                    ON CONFLICT (collection_path, doc_id)
                    DO UPDATE SET data = excluded.data, update_time = excluded.update_time
                    """,
                    (collection_path, doc_id, json.dumps(encode_document(data)), clock),
                )
            await conn.commit()
        except Exception:
            await conn.rollback()
            raise


__all__ = ["SQLiteDocumentDatabase", "SQLiteWriteBatch"]
