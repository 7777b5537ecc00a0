"""
Destination path and ID mapping, and subcollection exclude patterns.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping


def join_path(*segments: str) -> str:
    """Join path segments with ``/``."""
    return "/".join(segment.strip("/") for segment in segments if segment)


def dest_collection_path(source_path: str, rename_map: Mapping[str, str]) -> str:
    """
    Map a source collection path to its destination path.

    Only the root collection segment is renamed; nested segments are kept.

    Example:
        >>> dest_collection_path("users/123/orders", {"users": "users_backup"})
        'users_backup/123/orders'
        >>> dest_collection_path("orders", {"users": "users_backup"})
        'orders'
    """
    root, sep, rest = source_path.partition("/")
    renamed = rename_map.get(root)
    if not renamed:
        return source_path
    return renamed + sep + rest


def dest_document_id(source_id: str, prefix: str | None = None, suffix: str | None = None) -> str:
    """
    Apply the configured ID prefix and suffix.

    Example:
        >>> dest_document_id("abc", "backup_", "_v2")
        'backup_abc_v2'
    """
    return f"{prefix or ''}{source_id}{suffix or ''}"


def matches_exclude_pattern(name: str, patterns: Iterable[str]) -> bool:
    """
    Check a subcollection name (or path) against exclude patterns.

    Patterns containing ``*`` are globs over the whole name, where ``*``
    matches any sequence of characters. Other patterns match exactly or as
    the trailing path segment(s).

    Example:
        >>> matches_exclude_pattern("temp_cache", ["temp*"])
        True
        >>> matches_exclude_pattern("users/1/logs", ["logs"])
        True
    """
    for pattern in patterns:
        if "*" in pattern:
            regex = "^" + ".*".join(re.escape(part) for part in pattern.split("*")) + "$"
            if re.match(regex, name):
                return True
        elif name == pattern or name.endswith("/" + pattern):
            return True
    return False


__all__ = [
    "join_path",
    "dest_collection_path",
    "dest_document_id",
    "matches_exclude_pattern",
]
