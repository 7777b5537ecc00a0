"""
Destructive destination operations: clearing collections before a copy and
deleting destination documents that no longer exist in the source.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from fscopy.config import TransferConfig
from fscopy.exceptions import BatchCommitError, QueryError
from fscopy.retry import RetryConfig, with_retry
from fscopy.stores.interface import DocumentDatabase, DocumentSnapshot
from fscopy.transfer.paths import (
    dest_collection_path,
    dest_document_id,
    join_path,
    matches_exclude_pattern,
)

logger = logging.getLogger(__name__)


async def _read_collection(
    database: DocumentDatabase,
    collection_path: str,
    retry: RetryConfig,
) -> list[DocumentSnapshot]:
    try:
        return await with_retry(
            lambda: database.query(collection_path),
            retry,
            operation_name=f"query {collection_path}",
        )
    except Exception as e:
        raise QueryError(collection_path, e) from e


async def _subcollection_paths(
    database: DocumentDatabase,
    document_path: str,
    exclude: Sequence[str],
    retry: RetryConfig,
) -> list[str]:
    try:
        names = await with_retry(
            lambda: database.list_subcollections(document_path),
            retry,
            operation_name=f"list subcollections {document_path}",
        )
    except Exception as e:
        raise QueryError(document_path, e) from e
    return [
        join_path(document_path, name)
        for name in names
        if not matches_exclude_pattern(name, exclude)
    ]


async def _delete_documents(
    database: DocumentDatabase,
    collection_path: str,
    document_ids: Sequence[str],
    config: TransferConfig,
) -> int:
    """Delete documents in ``batch_size`` chunks; nothing is written in a dry run."""
    retry = RetryConfig(retries=config.retries)
    for start in range(0, len(document_ids), config.batch_size):
        chunk = document_ids[start : start + config.batch_size]
        if not config.dry_run:
            batch = database.batch()
            for doc_id in chunk:
                batch.delete(f"{collection_path}/{doc_id}")
            try:
                await with_retry(
                    batch.commit,
                    retry,
                    operation_name=f"delete from {collection_path}",
                )
            except Exception as e:
                raise BatchCommitError(collection_path, list(chunk), e) from e
        logger.info(
            "Deleted %d documents from %s",
            len(chunk),
            collection_path,
            extra={"collection": collection_path, "count": len(chunk), "dry_run": config.dry_run},
        )
    return len(document_ids)


async def clear_collection(
    database: DocumentDatabase,
    collection_path: str,
    config: TransferConfig,
    *,
    include_subcollections: bool = False,
) -> int:
    """
    Delete every document of a collection.

    Args:
        database: Database to clear (normally the destination)
        collection_path: Collection to clear
        config: Batch size, retries, exclude patterns and dry-run flag
        include_subcollections: Also clear subcollections of every document,
            except those matching an exclude pattern

    Returns:
        Number of documents deleted (or that would be deleted in a dry run)
    """
    retry = RetryConfig(retries=config.retries)
    deleted = 0
    stack = [collection_path]

    while stack:
        current = stack.pop()
        documents = await _read_collection(database, current, retry)
        if not documents:
            continue

        if include_subcollections:
            for doc in documents:
                stack.extend(await _subcollection_paths(database, doc.path, config.exclude, retry))

        deleted += await _delete_documents(database, current, [doc.id for doc in documents], config)

    return deleted


async def delete_orphan_documents(
    source: DocumentDatabase,
    destination: DocumentDatabase,
    source_collection_path: str,
    config: TransferConfig,
) -> int:
    """
    Delete destination documents that have no counterpart in the source.

    Source IDs are mapped through the configured ID prefix/suffix before
    comparing. With subcollections included, orphans lose their
    subcollections too, and the source's subcollections are synced the same
    way.

    Returns:
        Number of destination documents deleted
    """
    retry = RetryConfig(retries=config.retries)
    deleted = 0
    stack = [source_collection_path]

    while stack:
        current = stack.pop()
        dest_collection = dest_collection_path(current, config.rename_collection)

        source_docs = await _read_collection(source, current, retry)
        expected_ids = {
            dest_document_id(doc.id, config.id_prefix, config.id_suffix) for doc in source_docs
        }
        dest_docs = await _read_collection(destination, dest_collection, retry)
        orphans = [doc for doc in dest_docs if doc.id not in expected_ids]

        if orphans:
            logger.info(
                "Found %d orphan documents in %s",
                len(orphans),
                dest_collection,
                extra={"collection": dest_collection, "orphans": len(orphans)},
            )
            if config.include_subcollections:
                for orphan in orphans:
                    for sub_path in await _subcollection_paths(
                        destination, orphan.path, config.exclude, retry
                    ):
                        deleted += await clear_collection(
                            destination, sub_path, config, include_subcollections=True
                        )
            deleted += await _delete_documents(
                destination, dest_collection, [doc.id for doc in orphans], config
            )

        if config.include_subcollections:
            for doc in reversed(source_docs):
                sub_paths = await _subcollection_paths(source, doc.path, config.exclude, retry)
                stack.extend(reversed(sub_paths))

    return deleted


__all__ = ["clear_collection", "delete_orphan_documents"]
