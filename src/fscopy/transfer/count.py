"""
Document counting and post-transfer count verification.

Every read goes through ``with_retry`` with the run's retry settings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fscopy.config import TransferConfig
from fscopy.models import CollectionCount
from fscopy.retry import RetryConfig, with_retry
from fscopy.stores.interface import DocumentDatabase
from fscopy.transfer.paths import dest_collection_path, join_path, matches_exclude_pattern

logger = logging.getLogger(__name__)


async def count_documents(
    database: DocumentDatabase,
    collection_path: str,
    config: TransferConfig,
    *,
    on_collection: Callable[[str, int], None] | None = None,
) -> int:
    """
    Count the documents a transfer of ``collection_path`` would read.

    Root-level filters apply at depth 0 only. Without subcollections this is
    a single count query; with them, every document is listed to discover
    its subcollections.

    Args:
        database: Source database
        collection_path: Top-level collection path
        config: Filters, exclude patterns, subcollection and retry settings
        on_collection: Called with (path, count) for every counted collection

    Raises:
        Exception: The last endpoint error once retries are exhausted
    """
    retry = RetryConfig(retries=config.retries)
    total = 0
    stack: list[tuple[str, int]] = [(collection_path, 0)]

    while stack:
        path, depth = stack.pop()
        filters = config.where if depth == 0 else []

        if not config.include_subcollections:
            count = await with_retry(
                lambda: database.count(path, filters),
                retry,
                operation_name=f"count {path}",
            )
            total += count
            if on_collection:
                on_collection(path, count)
            continue

        limit = config.limit if depth == 0 else 0
        documents = await with_retry(
            lambda: database.query(path, filters, limit),
            retry,
            operation_name=f"query {path}",
        )
        total += len(documents)
        if on_collection:
            on_collection(path, len(documents))

        if config.max_depth and depth + 1 > config.max_depth:
            continue
        for doc in documents:
            names = await with_retry(
                lambda: database.list_subcollections(doc.path),
                retry,
                operation_name=f"list subcollections {doc.path}",
            )
            for name in names:
                if not matches_exclude_pattern(name, config.exclude):
                    stack.append((join_path(doc.path, name), depth + 1))

    if config.limit and not config.include_subcollections:
        total = min(total, config.limit)
    return total


async def verify_transfer(
    source: DocumentDatabase,
    destination: DocumentDatabase,
    config: TransferConfig,
) -> dict[str, CollectionCount]:
    """
    Compare source and destination document counts per top-level collection.

    Returns:
        Counts keyed by source collection path
    """
    retry = RetryConfig(retries=config.retries)
    results: dict[str, CollectionCount] = {}
    for collection in config.collections:
        dest_collection = dest_collection_path(collection, config.rename_collection)
        source_count = await with_retry(
            lambda: source.count(collection),
            retry,
            operation_name=f"count {collection}",
        )
        dest_count = await with_retry(
            lambda: destination.count(dest_collection),
            retry,
            operation_name=f"count {dest_collection}",
        )
        counts = CollectionCount(source_count=source_count, dest_count=dest_count)
        results[collection] = counts

        if counts.matches:
            logger.info("Verified %s: %d documents", collection, counts.source_count)
        else:
            logger.warning(
                "Count mismatch for %s: source=%d, dest=%d",
                collection,
                counts.source_count,
                counts.dest_count,
                extra={"collection": collection},
            )
    return results


__all__ = ["count_documents", "verify_transfer"]
