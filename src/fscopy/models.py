"""
Run results and counters shared by the transfer components.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

_STATS_KEYS = {
    "collections_processed": "collectionsProcessed",
    "documents_transferred": "documentsTransferred",
    "documents_deleted": "documentsDeleted",
    "errors": "errors",
    "conflicts": "conflicts",
    "integrity_errors": "integrityErrors",
}


@dataclass
class TransferStats:
    """
    Counters for one transfer run.

    A single instance is owned by the orchestrator and mutated in place by the
    walker, processor and committer. Increments happen between awaits, so no
    lock is needed under asyncio's cooperative scheduling.

    Attributes:
        collections_processed: Non-empty collections copied (subcollections included)
        documents_transferred: Documents written, or found already completed on resume
        documents_deleted: Destination documents removed by clear or delete-missing
        errors: Per-document and per-collection failures
        conflicts: Documents skipped because the destination changed mid-batch
        integrity_errors: Written documents whose re-read content did not match
    """

    collections_processed: int = 0
    documents_transferred: int = 0
    documents_deleted: int = 0
    errors: int = 0
    conflicts: int = 0
    integrity_errors: int = 0

    def copy(self) -> TransferStats:
        """Return an independent snapshot of the counters."""
        return replace(self)

    def to_dict(self) -> dict[str, int]:
        """Serialize with the camelCase keys used in the state file."""
        return {key: getattr(self, name) for name, key in _STATS_KEYS.items()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TransferStats:
        """Build stats from ``to_dict`` output; unknown or missing keys are ignored."""
        stats = cls()
        for name, key in _STATS_KEYS.items():
            if key in data:
                setattr(stats, name, int(data[key]))
        return stats


@dataclass(frozen=True)
class ConflictInfo:
    """
    A destination document that changed while its batch was being prepared.

    Attributes:
        collection: Destination collection path
        doc_id: Destination document ID
        reason: What changed (modified, created or deleted)
    """

    collection: str
    doc_id: str
    reason: str


@dataclass(frozen=True)
class CollectionCount:
    """Source and destination document counts of one collection."""

    source_count: int
    dest_count: int

    @property
    def matches(self) -> bool:
        return self.source_count == self.dest_count


@dataclass
class TransferResult:
    """
    Outcome of ``run_transfer``.

    Attributes:
        success: False when a fatal error stopped the run
        stats: Final counters
        duration_seconds: Wall-clock duration of the run
        error: Fatal error, if any
        verify_result: Per-collection counts when verification was requested
        conflicts: Conflicts detected during the run
    """

    success: bool
    stats: TransferStats
    duration_seconds: float
    error: Exception | None = None
    verify_result: dict[str, CollectionCount] | None = None
    conflicts: list[ConflictInfo] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        """Process exit code: 1 on failure or when any error was counted."""
        return 0 if self.success and self.stats.errors == 0 else 1


__all__ = [
    "TransferStats",
    "ConflictInfo",
    "CollectionCount",
    "TransferResult",
]
