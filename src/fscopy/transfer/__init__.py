"""
Transfer execution engine.

- paths: destination path/ID mapping and exclude patterns
- processor: per-document decisions
- committer: batch writes with rate limiting, retry and state tracking
- walker: collection traversal
- parallel: bounded fan-out across top-level collections
- clear: clearing and orphan deletion
- count: document counts and count verification
"""

from fscopy.transfer.clear import clear_collection, delete_orphan_documents
from fscopy.transfer.committer import BatchCommitter, BatchResult, PendingBatch
from fscopy.transfer.context import TransferContext, TransformFunction
from fscopy.transfer.count import count_documents, verify_transfer
from fscopy.transfer.parallel import ParallelResult, process_in_parallel
from fscopy.transfer.paths import (
    dest_collection_path,
    dest_document_id,
    join_path,
    matches_exclude_pattern,
)
from fscopy.transfer.processor import ProcessedDocument, ProcessOutcome, process_document
from fscopy.transfer.walker import CollectionWalker

__all__ = [
    "TransferContext",
    "TransformFunction",
    "ProcessOutcome",
    "ProcessedDocument",
    "process_document",
    "BatchCommitter",
    "BatchResult",
    "PendingBatch",
    "CollectionWalker",
    "ParallelResult",
    "process_in_parallel",
    "clear_collection",
    "delete_orphan_documents",
    "count_documents",
    "verify_transfer",
    "dest_collection_path",
    "dest_document_id",
    "join_path",
    "matches_exclude_pattern",
]
