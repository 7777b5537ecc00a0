"""
Document size estimation.

The estimate follows Firestore's storage size rules closely enough to detect
documents that would be rejected for exceeding the 1 MiB limit before a batch
is sent:

- Field names: UTF-8 length + 1
- Strings: UTF-8 length + 1
- Integers, floats, timestamps: 8
- Booleans, null: 1
- Bytes: length + 1
- GeoPoints: 16
- References: path length + 1
- Arrays and maps: sum of their elements
- Document name: path length + 1 (when a path is supplied)
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any

from fscopy.documents.values import DocumentRef, GeoPoint, Timestamp

MAX_DOCUMENT_SIZE = 1024 * 1024


def estimate_document_size(data: Mapping[str, Any], path: str | None = None) -> int:
    """
    Estimate the stored size of a document in bytes.

    Args:
        data: Document field map.
        path: Destination document path, counted when given.

    Returns:
        Estimated size in bytes.

    Example:
        >>> estimate_document_size({"name": "hello"})
        11
        >>> estimate_document_size({"a": 1}, "users/123")
        20
    """
    size = _map_size(data)
    if path:
        size += len(path) + 1
    return size


def _map_size(data: Mapping[str, Any]) -> int:
    size = 0
    for key, value in data.items():
        size += len(key.encode("utf-8")) + 1
        size += _value_size(value)
    return size


def _value_size(value: Any) -> int:
    # bool is checked before int since it is a subclass
    if value is None or isinstance(value, bool):
        return 1
    if isinstance(value, (int, float)):
        return 8
    if isinstance(value, str):
        return len(value.encode("utf-8")) + 1
    if isinstance(value, (bytes, bytearray)):
        return len(value) + 1
    if isinstance(value, (Timestamp, datetime)):
        return 8
    if isinstance(value, GeoPoint):
        return 16
    if isinstance(value, DocumentRef):
        return len(value.path) + 1
    if isinstance(value, Mapping):
        return _map_size(value)
    if isinstance(value, (list, tuple)):
        return sum(_value_size(item) for item in value)
    raise TypeError(f"Unsupported document value type: {type(value).__name__}")


def format_bytes(size: int) -> str:
    """
    Format a byte count for display.

    Example:
        >>> format_bytes(512)
        '512 B'
        >>> format_bytes(1536)
        '1.5 KB'
    """
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.2f} MB"


__all__ = [
    "MAX_DOCUMENT_SIZE",
    "estimate_document_size",
    "format_bytes",
]
