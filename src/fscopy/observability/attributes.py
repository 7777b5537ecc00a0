"""
Standard span attributes for fscopy.

Attribute names used by the orchestrator, walker and committer so spans from
every component can be filtered consistently.

Example:
    >>> from fscopy.observability.attributes import ATTR_COLLECTION_PATH
    >>>
    >>> with tracer.span(
    ...     "fscopy.walker.collection",
    ...     {ATTR_COLLECTION_PATH: "users", ATTR_DEPTH: 0},
    ... ):
    ...     pass
"""

# =============================================================================
# Run Attributes
# =============================================================================

ATTR_SOURCE = "fscopy.source"
"""Source project or database identifier."""

ATTR_DESTINATION = "fscopy.destination"
"""Destination project or database identifier."""

ATTR_DRY_RUN = "fscopy.dry_run"
"""Whether the run writes anything (boolean)."""

ATTR_RESUME = "fscopy.resume"
"""Whether the run resumes from a state file (boolean)."""

ATTR_COLLECTION_COUNT = "fscopy.collection.count"
"""Number of top-level collections in the run (integer)."""

# =============================================================================
# Collection Attributes
# =============================================================================

ATTR_COLLECTION_PATH = "fscopy.collection.path"
"""Source collection path (e.g., 'users/123/orders')."""

ATTR_DEST_COLLECTION_PATH = "fscopy.collection.dest_path"
"""Destination collection path after renaming."""

ATTR_DEPTH = "fscopy.depth"
"""Traversal depth, 0 for top-level collections (integer)."""

# =============================================================================
# Batch Attributes
# =============================================================================

ATTR_BATCH_SIZE = "fscopy.batch.size"
"""Number of documents written by a batch commit (integer)."""

ATTR_DOCUMENT_COUNT = "fscopy.document.count"
"""Number of documents read or affected (integer)."""

ATTR_CONFLICT_COUNT = "fscopy.conflict.count"
"""Number of conflicts detected in a batch (integer)."""

ATTR_MERGE = "fscopy.merge"
"""Whether writes merge into existing documents (boolean)."""

__all__ = [
    "ATTR_SOURCE",
    "ATTR_DESTINATION",
    "ATTR_DRY_RUN",
    "ATTR_RESUME",
    "ATTR_COLLECTION_COUNT",
    "ATTR_COLLECTION_PATH",
    "ATTR_DEST_COLLECTION_PATH",
    "ATTR_DEPTH",
    "ATTR_BATCH_SIZE",
    "ATTR_DOCUMENT_COUNT",
    "ATTR_CONFLICT_COUNT",
    "ATTR_MERGE",
]
