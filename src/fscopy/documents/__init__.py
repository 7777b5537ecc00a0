"""
Document value types and pure functions over document data.

- values: tagged special values (Timestamp, GeoPoint, DocumentRef)
- codec: tagged JSON form used for storage and hashing
- size: storage size estimation
- integrity: canonical content hashing
"""

from fscopy.documents.codec import decode_document, decode_value, encode_document, encode_value
from fscopy.documents.integrity import compare_hashes, hash_document
from fscopy.documents.size import MAX_DOCUMENT_SIZE, estimate_document_size, format_bytes
from fscopy.documents.values import DocumentData, DocumentRef, GeoPoint, Timestamp

__all__ = [
    "DocumentData",
    "DocumentRef",
    "GeoPoint",
    "Timestamp",
    "encode_value",
    "decode_value",
    "encode_document",
    "decode_document",
    "MAX_DOCUMENT_SIZE",
    "estimate_document_size",
    "format_bytes",
    "hash_document",
    "compare_hashes",
]
