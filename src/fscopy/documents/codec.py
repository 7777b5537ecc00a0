"""
Tagged JSON form of document values.

Special values become single-key objects so that documents can be stored as
JSON text and hashed canonically:

- ``Timestamp`` / ``datetime``: ``{"__timestamp__": [seconds, nanoseconds]}``
- ``GeoPoint``: ``{"__geopoint__": [latitude, longitude]}``
- ``DocumentRef``: ``{"__ref__": "users/123"}``
- ``bytes``: ``{"__bytes__": "<base64>"}``

A user map whose only key is one of these tags (or ``__map__``) is wrapped
as ``{"__map__": {...}}`` so it never decodes, or hashes, as a special value.
"""

from __future__ import annotations

import base64
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from fscopy.documents.values import DocumentData, DocumentRef, GeoPoint, Timestamp

_TIMESTAMP = "__timestamp__"
_GEOPOINT = "__geopoint__"
_REF = "__ref__"
_BYTES = "__bytes__"
_MAP = "__map__"

_RESERVED_KEYS = frozenset({_TIMESTAMP, _GEOPOINT, _REF, _BYTES, _MAP})


def encode_value(value: Any) -> Any:
    """Convert a document value into plain JSON-compatible data."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, datetime):
        value = Timestamp.from_datetime(value)
    if isinstance(value, Timestamp):
        return {_TIMESTAMP: [value.seconds, value.nanoseconds]}
    if isinstance(value, GeoPoint):
        return {_GEOPOINT: [value.latitude, value.longitude]}
    if isinstance(value, DocumentRef):
        return {_REF: value.path}
    if isinstance(value, (bytes, bytearray)):
        return {_BYTES: base64.b64encode(bytes(value)).decode("ascii")}
    if isinstance(value, Mapping):
        encoded = {str(key): encode_value(item) for key, item in value.items()}
        if len(encoded) == 1 and next(iter(encoded)) in _RESERVED_KEYS:
            return {_MAP: encoded}
        return encoded
    if isinstance(value, (list, tuple)):
        return [encode_value(item) for item in value]
    raise TypeError(f"Unsupported document value type: {type(value).__name__}")


def decode_value(value: Any) -> Any:
    """Inverse of ``encode_value``."""
    if isinstance(value, list):
        return [decode_value(item) for item in value]
    if not isinstance(value, dict):
        return value
    if len(value) == 1:
        key, payload = next(iter(value.items()))
        if key == _TIMESTAMP:
            return Timestamp(seconds=payload[0], nanoseconds=payload[1])
        if key == _GEOPOINT:
            return GeoPoint(latitude=payload[0], longitude=payload[1])
        if key == _REF:
            return DocumentRef(path=payload)
        if key == _BYTES:
            return base64.b64decode(payload)
        if key == _MAP:
            return {inner: decode_value(item) for inner, item in payload.items()}
    return {key: decode_value(item) for key, item in value.items()}


def encode_document(data: Mapping[str, Any]) -> dict[str, Any]:
    return encode_value(data)


def decode_document(data: Mapping[str, Any]) -> DocumentData:
    return decode_value(dict(data))


__all__ = [
    "encode_value",
    "decode_value",
    "encode_document",
    "decode_document",
]
