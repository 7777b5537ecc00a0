"""
Per-document decision pipeline.

Every source document goes through, in order:

1. Resume check: already completed documents are counted and skipped.
2. Transform: ``None`` skips the document but records it as completed; an
   exception is counted as an error and leaves it unrecorded so a resume
   retries it.
3. Size validation against ``MAX_DOCUMENT_SIZE`` including the destination
   path; oversized documents are skipped or abort the run.
4. Destination collection and ID mapping.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fscopy.documents.size import MAX_DOCUMENT_SIZE, estimate_document_size, format_bytes
from fscopy.documents.values import DocumentData
from fscopy.exceptions import OversizedDocumentError
from fscopy.stores.interface import DocumentSnapshot
from fscopy.transfer.context import TransferContext
from fscopy.transfer.paths import dest_collection_path, dest_document_id


class ProcessOutcome(Enum):
    """What to do with a processed document."""

    WRITE = "write"
    SKIP = "skip"
    ALREADY_COMPLETED = "already_completed"


@dataclass(frozen=True)
class ProcessedDocument:
    """
    Result of processing one source document.

    Attributes:
        source_id: Source document ID
        outcome: Write, skip or already completed
        mark_completed: Record the source ID as completed once the batch commits
        dest_collection: Destination collection path
        dest_id: Destination document ID
        data: Data to write (only for WRITE)
    """

    source_id: str
    outcome: ProcessOutcome
    mark_completed: bool
    dest_collection: str
    dest_id: str
    data: DocumentData | None = None

    @property
    def dest_path(self) -> str:
        return f"{self.dest_collection}/{self.dest_id}"


def process_document(
    snapshot: DocumentSnapshot,
    collection_path: str,
    ctx: TransferContext,
) -> ProcessedDocument:
    """
    Decide whether and how a source document is written.

    Args:
        snapshot: Source document
        collection_path: Source collection path
        ctx: Run context (config, stats, transform, tracker)

    Returns:
        The processing decision

    Raises:
        OversizedDocumentError: If the document is too large and oversized
            documents are not skipped
    """
    config = ctx.config
    stats = ctx.stats
    dest_collection = dest_collection_path(collection_path, config.rename_collection)
    dest_id = dest_document_id(snapshot.id, config.id_prefix, config.id_suffix)

    def skip(mark_completed: bool) -> ProcessedDocument:
        return ProcessedDocument(
            source_id=snapshot.id,
            outcome=ProcessOutcome.SKIP,
            mark_completed=mark_completed,
            dest_collection=dest_collection,
            dest_id=dest_id,
        )

    if ctx.tracker is not None and ctx.tracker.is_completed(collection_path, snapshot.id):
        stats.documents_transferred += 1
        return ProcessedDocument(
            source_id=snapshot.id,
            outcome=ProcessOutcome.ALREADY_COMPLETED,
            mark_completed=False,
            dest_collection=dest_collection,
            dest_id=dest_id,
        )

    data: DocumentData = snapshot.data
    if ctx.transform is not None:
        source_path = f"{collection_path}/{snapshot.id}"
        try:
            transformed = ctx.transform(data, {"id": snapshot.id, "path": source_path})
        except Exception as e:
            stats.errors += 1
            ctx.logger.error(
                "Transform failed for document %s: %s",
                source_path,
                e,
                extra={"collection": collection_path, "doc_id": snapshot.id},
            )
            return skip(mark_completed=False)

        if transformed is None:
            ctx.logger.info(
                "Skipped document (transform returned None)",
                extra={"collection": collection_path, "doc_id": snapshot.id},
            )
            return skip(mark_completed=True)
        data = transformed

    size = estimate_document_size(data, f"{dest_collection}/{dest_id}")
    if size > MAX_DOCUMENT_SIZE:
        if not config.skip_oversized:
            raise OversizedDocumentError(f"{collection_path}/{snapshot.id}", size, MAX_DOCUMENT_SIZE)
        ctx.logger.info(
            "Skipped oversized document (%s)",
            format_bytes(size),
            extra={"collection": collection_path, "doc_id": snapshot.id, "size": size},
        )
        return skip(mark_completed=True)

    return ProcessedDocument(
        source_id=snapshot.id,
        outcome=ProcessOutcome.WRITE,
        mark_completed=True,
        dest_collection=dest_collection,
        dest_id=dest_id,
        data=data,
    )


__all__ = ["ProcessOutcome", "ProcessedDocument", "process_document"]
