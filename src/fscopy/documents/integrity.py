"""
Content hashing for integrity and conflict checks.

Documents are serialized to canonical JSON (keys sorted at every level,
special values in their tagged form) and hashed with SHA-256, so two documents
with the same content hash identically regardless of key insertion order.
"""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from typing import Any

from fscopy.documents.codec import encode_document


def hash_document(data: Mapping[str, Any]) -> str:
    """
    Compute the SHA-256 hex digest of a document's content.

    Args:
        data: Document field map.

    Returns:
        64-character hex digest.

    Example:
        >>> hash_document({"a": 1, "b": 2}) == hash_document({"b": 2, "a": 1})
        True
    """
    serialized = json.dumps(
        encode_document(data),
        sort_keys=True,
        separators=(",", ":"),
        ensure_ascii=False,
    )
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


def compare_hashes(source_hash: str, dest_hash: str) -> bool:
    """Return True when two document hashes are identical."""
    return source_hash == dest_hash


__all__ = [
    "hash_document",
    "compare_hashes",
]
