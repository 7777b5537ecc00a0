"""
Document database endpoints.

- interface: DocumentDatabase ABC, DocumentSnapshot and WriteBatch
- in_memory: dict-backed database for tests and development
- sqlite: aiosqlite-backed database for local copies
- firestore: google-cloud-firestore async client
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import AsyncExitStack, asynccontextmanager
from typing import Literal

from fscopy.stores.in_memory import InMemoryDocumentDatabase, InMemoryWriteBatch
from fscopy.stores.interface import (
    DocumentDatabase,
    DocumentSnapshot,
    WriteBatch,
    WriteKind,
    WriteOperation,
)
from fscopy.stores.sqlite import SQLiteDocumentDatabase, SQLiteWriteBatch

logger = logging.getLogger(__name__)

Backend = Literal["firestore", "sqlite", "memory"]


def create_database(backend: Backend, target: str) -> DocumentDatabase:
    """
    Create an (unopened) database endpoint.

    Args:
        backend: ``firestore``, ``sqlite`` or ``memory``
        target: Project ID for Firestore, database file for SQLite, a name for memory
    """
    if backend == "firestore":
        from fscopy.stores.firestore import FirestoreDocumentDatabase

        return FirestoreDocumentDatabase(target)
    if backend == "sqlite":
        return SQLiteDocumentDatabase(target)
    if backend == "memory":
        return InMemoryDocumentDatabase(target)
    raise ValueError(f"Unknown backend: {backend}")


@asynccontextmanager
async def open_databases(
    source: DocumentDatabase,
    destination: DocumentDatabase,
) -> AsyncIterator[tuple[DocumentDatabase, DocumentDatabase]]:
    """
    Open both endpoints for a transfer and close them on every exit path.

    If the destination fails to open, the already opened source is closed.

    Example:
        >>> async with open_databases(create_database("sqlite", "a.db"),
        ...                           create_database("sqlite", "b.db")) as (src, dst):
        ...     result = await run_transfer(config, src, dst)
    """
    async with AsyncExitStack() as stack:
        opened_source = await stack.enter_async_context(source)
        opened_destination = await stack.enter_async_context(destination)
        logger.debug(
            "Opened databases",
            extra={"source": source.name, "destination": destination.name},
        )
        yield opened_source, opened_destination


__all__ = [
    "Backend",
    "DocumentDatabase",
    "DocumentSnapshot",
    "WriteBatch",
    "WriteKind",
    "WriteOperation",
    "InMemoryDocumentDatabase",
    "InMemoryWriteBatch",
    "SQLiteDocumentDatabase",
    "SQLiteWriteBatch",
    "create_database",
    "open_databases",
]
