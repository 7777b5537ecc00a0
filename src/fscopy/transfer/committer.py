"""
Batch commit: rate limiting, retry, conflict detection, completion tracking
and integrity verification for one batch of processed documents.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from fscopy.documents.integrity import compare_hashes, hash_document
from fscopy.exceptions import BatchCommitError
from fscopy.models import ConflictInfo
from fscopy.observability import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_PATH,
    ATTR_CONFLICT_COUNT,
    ATTR_MERGE,
)
from fscopy.retry import with_retry
from fscopy.stores.interface import DocumentSnapshot
from fscopy.transfer.context import TransferContext
from fscopy.transfer.paths import dest_collection_path, dest_document_id
from fscopy.transfer.processor import ProcessedDocument, ProcessOutcome


@dataclass
class PendingBatch:
    """
    A batch opened for a slice of source documents.

    Attributes:
        collection_path: Source collection path
        dest_collection: Destination collection path
        baseline: Destination update times captured when the batch was opened
            (only with conflict detection); None marks a missing document
    """

    collection_path: str
    dest_collection: str
    baseline: dict[str, Any] | None = None


@dataclass
class BatchResult:
    """
    What happened to a committed batch.

    Attributes:
        written: Source IDs written (or that would be written in a dry run)
        completed: Source IDs recorded as completed
        conflicts: Conflicts that kept documents out of the write
        integrity_errors: Destination paths whose re-read content differs
    """

    written: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    integrity_errors: list[str] = field(default_factory=list)


class BatchCommitter:
    """
    Commits batches of processed documents to the destination.

    Example:
        >>> committer = BatchCommitter(ctx)
        >>> pending = await committer.open("users", snapshots)
        >>> processed = [process_document(s, "users", ctx) for s in snapshots]
        >>> result = await committer.commit(pending, processed)
    """

    def __init__(self, ctx: TransferContext) -> None:
        self._ctx = ctx

    async def open(self, collection_path: str, snapshots: Sequence[DocumentSnapshot]) -> PendingBatch:
        """
        Open a batch for ``snapshots`` of ``collection_path``.

        With conflict detection enabled, the destination update times of every
        target document are captured here.
        """
        config = self._ctx.config
        dest_collection = dest_collection_path(collection_path, config.rename_collection)
        pending = PendingBatch(collection_path=collection_path, dest_collection=dest_collection)

        if config.detect_conflicts and not config.dry_run and snapshots:
            paths = [
                f"{dest_collection}/{dest_document_id(s.id, config.id_prefix, config.id_suffix)}"
                for s in snapshots
            ]
            pending.baseline = await self._read_versions(paths)
        return pending

    async def commit(
        self,
        pending: PendingBatch,
        processed: Sequence[ProcessedDocument],
    ) -> BatchResult:
        """
        Write the batch and record completed documents.

        Raises:
            BatchCommitError: If the commit still fails after all retries
        """
        ctx = self._ctx
        config = ctx.config
        stats = ctx.stats
        result = BatchResult()

        to_write = [p for p in processed if p.outcome is ProcessOutcome.WRITE]

        if config.dry_run:
            result.written = [p.source_id for p in to_write]
            stats.documents_transferred += len(to_write)
            return result

        conflicted: set[str] = set()
        if pending.baseline is not None and to_write:
            result.conflicts = await self._detect_conflicts(pending, to_write)
            conflicted = {c.doc_id for c in result.conflicts}
            to_write = [p for p in to_write if p.dest_id not in conflicted]

        if to_write:
            await self._write(pending, to_write, len(result.conflicts))

        result.written = [p.source_id for p in to_write]
        stats.documents_transferred += len(to_write)
        for p in to_write:
            ctx.logger.info(
                "Transferred document",
                extra={
                    "source": pending.collection_path,
                    "dest": pending.dest_collection,
                    "source_doc_id": p.source_id,
                    "dest_doc_id": p.dest_id,
                },
            )

        result.completed = [
            p.source_id for p in processed if p.mark_completed and p.dest_id not in conflicted
        ]
        if ctx.tracker is not None and result.completed:
            await ctx.tracker.mark_batch_completed(
                pending.collection_path, result.completed, stats
            )

        if config.verify_integrity and to_write:
            result.integrity_errors = await self._verify(to_write)

        return result

    async def _write(
        self,
        pending: PendingBatch,
        documents: list[ProcessedDocument],
        conflict_count: int = 0,
    ) -> None:
        ctx = self._ctx
        config = ctx.config

        if ctx.rate_limiter is not None:
            await ctx.rate_limiter.acquire(len(documents))

        batch = ctx.destination.batch()
        for p in documents:
            batch.set(p.dest_path, p.data or {}, merge=config.merge)

        with ctx.tracer.span(
            "fscopy.committer.commit",
            {
                ATTR_COLLECTION_PATH: pending.collection_path,
                ATTR_BATCH_SIZE: len(documents),
                ATTR_MERGE: config.merge,
                ATTR_CONFLICT_COUNT: conflict_count,
            },
        ):
            try:
                await with_retry(
                    batch.commit,
                    ctx.retry_config,
                    on_retry=ctx.retry_logger(f"commit to {pending.dest_collection}"),
                    operation_name=f"commit {pending.dest_collection}",
                )
            except Exception as e:
                raise BatchCommitError(
                    pending.collection_path, [p.source_id for p in documents], e
                ) from e

    async def _read_versions(self, paths: list[str]) -> dict[str, Any]:
        ctx = self._ctx
        snapshots = await with_retry(
            lambda: ctx.destination.get_all(paths),
            ctx.retry_config,
            on_retry=ctx.retry_logger("conflict check read"),
            operation_name="conflict check read",
        )
        return {s.path: (s.update_time if s.exists else None) for s in snapshots}

    async def _detect_conflicts(
        self,
        pending: PendingBatch,
        documents: list[ProcessedDocument],
    ) -> list[ConflictInfo]:
        ctx = self._ctx
        baseline = pending.baseline or {}
        current = await self._read_versions([p.dest_path for p in documents])

        conflicts = []
        for p in documents:
            before = baseline.get(p.dest_path)
            after = current.get(p.dest_path)
            if before == after:
                continue
            if before is None:
                reason = "Document was created in destination during transfer"
            elif after is None:
                reason = "Document was deleted in destination during transfer"
            else:
                reason = "Document was modified in destination during transfer"
            conflict = ConflictInfo(collection=p.dest_collection, doc_id=p.dest_id, reason=reason)
            conflicts.append(conflict)
            ctx.conflicts.append(conflict)
            ctx.stats.conflicts += 1
            ctx.logger.warning(
                "Conflict detected for %s: %s",
                p.dest_path,
                reason,
                extra={"collection": p.dest_collection, "doc_id": p.dest_id},
            )

        return conflicts

    async def _verify(self, documents: list[ProcessedDocument]) -> list[str]:
        ctx = self._ctx
        snapshots = await with_retry(
            lambda: ctx.destination.get_all([p.dest_path for p in documents]),
            ctx.retry_config,
            on_retry=ctx.retry_logger("integrity read"),
            operation_name="integrity read",
        )

        mismatched = []
        for p, snapshot in zip(documents, snapshots, strict=True):
            expected = p.data or {}
            if not snapshot.exists:
                problem = "missing after write"
            else:
                actual = snapshot.data
                if ctx.config.merge:
                    actual = project_fields(actual, expected)
                if compare_hashes(hash_document(expected), hash_document(actual)):
                    continue
                problem = "hash mismatch"

            mismatched.append(p.dest_path)
            ctx.stats.integrity_errors += 1
            ctx.logger.warning(
                "Integrity check failed for %s: %s",
                p.dest_path,
                problem,
                extra={"collection": p.dest_collection, "doc_id": p.dest_id},
            )
        return mismatched


def project_fields(data: Mapping[str, Any], shape: Mapping[str, Any]) -> dict[str, Any]:
    """
    Keep only the fields of ``data`` that appear in ``shape``.

    Nested maps are projected recursively, so fields a merge left in place
    at any depth are ignored. Fields missing from ``data`` are omitted.
    """
    projected: dict[str, Any] = {}
    for key, expected in shape.items():
        if key not in data:
            continue
        value = data[key]
        if isinstance(expected, Mapping) and isinstance(value, Mapping):
            projected[key] = project_fields(value, expected)
        else:
            projected[key] = value
    return projected


__all__ = ["BatchCommitter", "BatchResult", "PendingBatch", "project_fields"]
