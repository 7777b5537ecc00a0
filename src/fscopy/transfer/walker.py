"""
Collection traversal.

Collections are visited from an explicit LIFO stack of
``(collection_path, depth)`` items rather than by recursion, so arbitrarily
deep hierarchies never exhaust the call stack. Subcollections discovered in a
collection are pushed in reverse so they are visited in discovery order once
the current collection is done.

Filters and the document limit apply only at depth 0; subcollections are
always read in full.

Subcollections are visited for documents written in this run and for
documents an earlier run already completed, so resuming a run that stopped
inside a subtree finishes that subtree.
"""

from __future__ import annotations

from fscopy.exceptions import QueryError
from fscopy.observability import (
    ATTR_COLLECTION_PATH,
    ATTR_DEPTH,
    ATTR_DEST_COLLECTION_PATH,
    ATTR_DOCUMENT_COUNT,
)
from fscopy.retry import with_retry
from fscopy.stores.interface import DocumentSnapshot
from fscopy.transfer.committer import BatchCommitter
from fscopy.transfer.context import TransferContext
from fscopy.transfer.paths import dest_collection_path, join_path, matches_exclude_pattern
from fscopy.transfer.processor import ProcessOutcome, process_document

WorkItem = tuple[str, int]


class CollectionWalker:
    """
    Copies one top-level collection and, optionally, its subcollections.

    Batches within a collection are processed and committed sequentially, in
    query order.

    Example:
        >>> walker = CollectionWalker(ctx)
        >>> await walker.walk("users")
    """

    def __init__(self, ctx: TransferContext, committer: BatchCommitter | None = None) -> None:
        self._ctx = ctx
        self._committer = committer or BatchCommitter(ctx)

    async def walk(self, collection_path: str) -> None:
        """
        Transfer ``collection_path`` and everything below it.

        Raises:
            QueryError: If reading a collection fails after all retries
            OversizedDocumentError: If an oversized document is not skipped
            BatchCommitError: If a batch commit fails after all retries
        """
        stack: list[WorkItem] = [(collection_path, 0)]
        while stack:
            path, depth = stack.pop()
            children = await self._transfer_collection(path, depth)
            stack.extend(reversed(children))

    async def _transfer_collection(self, collection_path: str, depth: int) -> list[WorkItem]:
        ctx = self._ctx
        config = ctx.config
        dest_collection = dest_collection_path(collection_path, config.rename_collection)

        with ctx.tracer.span(
            "fscopy.walker.collection",
            {
                ATTR_COLLECTION_PATH: collection_path,
                ATTR_DEST_COLLECTION_PATH: dest_collection,
                ATTR_DEPTH: depth,
            },
        ) as span:
            documents = await self._query(collection_path, depth)
            if span:
                span.set_attribute(ATTR_DOCUMENT_COUNT, len(documents))
            if not documents:
                return []

            ctx.stats.collections_processed += 1
            ctx.logger.info(
                "Processing collection: %s",
                collection_path,
                extra={
                    "collection": collection_path,
                    "documents": len(documents),
                    "depth": depth,
                },
            )

            children: list[WorkItem] = []
            for start in range(0, len(documents), config.batch_size):
                batch = documents[start : start + config.batch_size]
                pending = await self._committer.open(collection_path, batch)
                processed = [process_document(doc, collection_path, ctx) for doc in batch]
                result = await self._committer.commit(pending, processed)

                if self._should_descend(depth):
                    written = set(result.written)
                    # a parent completed by an earlier run may have an unfinished subtree
                    parents = [
                        p.source_id
                        for p in processed
                        if p.source_id in written or p.outcome is ProcessOutcome.ALREADY_COMPLETED
                    ]
                    for doc_id in parents:
                        children.extend(
                            await self._discover_subcollections(collection_path, doc_id, depth)
                        )
            return children

    def _should_descend(self, depth: int) -> bool:
        config = self._ctx.config
        if not config.include_subcollections:
            return False
        return config.max_depth == 0 or depth + 1 <= config.max_depth

    async def _query(self, collection_path: str, depth: int) -> list[DocumentSnapshot]:
        ctx = self._ctx
        config = ctx.config
        filters = config.where if depth == 0 else []
        limit = config.limit if depth == 0 else 0

        try:
            return await with_retry(
                lambda: ctx.source.query(collection_path, filters, limit),
                ctx.retry_config,
                on_retry=ctx.retry_logger(collection_path),
                operation_name=f"query {collection_path}",
            )
        except Exception as e:
            raise QueryError(collection_path, e) from e

    async def _discover_subcollections(
        self,
        collection_path: str,
        doc_id: str,
        depth: int,
    ) -> list[WorkItem]:
        ctx = self._ctx
        document_path = join_path(collection_path, doc_id)

        try:
            names = await with_retry(
                lambda: ctx.source.list_subcollections(document_path),
                ctx.retry_config,
                on_retry=ctx.retry_logger(f"subcollections of {document_path}"),
                operation_name=f"list subcollections {document_path}",
            )
        except Exception as e:
            raise QueryError(document_path, e) from e

        children = []
        for name in names:
            if matches_exclude_pattern(name, ctx.config.exclude):
                ctx.logger.info(
                    "Skipping excluded subcollection: %s",
                    name,
                    extra={"collection": collection_path, "doc_id": doc_id},
                )
                continue
            children.append((join_path(document_path, name), depth + 1))
        return children


__all__ = ["CollectionWalker", "WorkItem"]
