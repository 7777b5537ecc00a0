"""
Exceptions for the fscopy transfer engine.

Exception Hierarchy:
    FscopyError (base)
    +-- ConfigurationError
    +-- TransferStateError
    +-- TransformLoadError
    +-- TransferError
        +-- OversizedDocumentError
        +-- QueryError
        +-- BatchCommitError

Only ``TransferError`` subclasses and ``ConfigurationError`` terminate a run.
Per-document problems (transform failures, conflicts, integrity mismatches)
are counted in ``TransferStats`` and logged instead of raised.

The module also maps raw endpoint errors (gRPC status codes and messages) to
human-readable messages with a suggested fix via ``classify_endpoint_error``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from fscopy.documents.size import format_bytes


class FscopyError(Exception):
    """
    Base exception for all fscopy errors.

    Attributes:
        message: Human-readable error description.
        suggested_action: Suggested action for recovery, if any.
    """

    def __init__(self, message: str, *, suggested_action: str | None = None) -> None:
        self.message = message
        self.suggested_action = suggested_action
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the exception to a dictionary for JSON output."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "suggested_action": self.suggested_action,
        }


class ConfigurationError(FscopyError):
    """
    Raised when the transfer configuration is invalid.

    Always raised before any document is read or written.

    Attributes:
        errors: Individual validation messages.
    """

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__(
            "Invalid configuration: " + "; ".join(self.errors),
            suggested_action="Fix the configuration values listed above and run again",
        )


class TransferStateError(FscopyError):
    """Raised when a saved transfer state cannot be used for resume."""

    pass


class TransformLoadError(FscopyError):
    """Raised when a transform file cannot be loaded."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        super().__init__(f"Failed to load transform {path}: {reason}")


class TransferError(FscopyError):
    """
    Base class for errors that abort a running transfer.

    The state file is left at its last successful save so that the transfer
    can be resumed.

    Attributes:
        collection_path: Collection being processed when the error occurred.
    """

    def __init__(
        self,
        message: str,
        *,
        collection_path: str | None = None,
        suggested_action: str | None = None,
    ) -> None:
        self.collection_path = collection_path
        super().__init__(
            message,
            suggested_action=suggested_action or "Fix the cause and run again with --resume",
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["collection_path"] = self.collection_path
        return data


class OversizedDocumentError(TransferError):
    """
    Raised when a document exceeds the maximum document size.

    Attributes:
        document_path: Source path of the offending document.
        size: Estimated size in bytes.
    """

    def __init__(self, document_path: str, size: int, limit: int) -> None:
        self.document_path = document_path
        self.size = size
        self.limit = limit
        collection_path = document_path.rsplit("/", 1)[0]
        super().__init__(
            f"Document {document_path} exceeds {format_bytes(limit)} limit "
            f"({format_bytes(size)})",
            collection_path=collection_path,
            suggested_action="Use --skip-oversized to skip oversized documents",
        )


class QueryError(TransferError):
    """Raised when reading a collection fails after all retries."""

    def __init__(self, collection_path: str, error: BaseException) -> None:
        self.original_error = error
        info = classify_endpoint_error(error)
        super().__init__(
            f"Query failed for {collection_path}: {info.message}",
            collection_path=collection_path,
            suggested_action=info.suggestion,
        )


class BatchCommitError(TransferError):
    """
    Raised when committing a write batch fails after all retries.

    Attributes:
        document_ids: Source IDs of the documents in the failed batch.
    """

    def __init__(
        self,
        collection_path: str,
        document_ids: list[str],
        error: BaseException,
    ) -> None:
        self.document_ids = list(document_ids)
        self.original_error = error
        info = classify_endpoint_error(error)
        super().__init__(
            f"Batch commit of {len(self.document_ids)} documents failed for "
            f"{collection_path}: {info.message}",
            collection_path=collection_path,
            suggested_action=info.suggestion,
        )


@dataclass(frozen=True)
class EndpointErrorInfo:
    """
    Readable description of a database endpoint error.

    Attributes:
        message: Short description of the failure.
        suggestion: How to fix it, if known.
        transient: Whether retrying may succeed.
    """

    message: str
    suggestion: str | None = None
    transient: bool = False


_PERMISSION = EndpointErrorInfo(
    "Permission denied",
    "Ensure you have Firestore read/write access on this project",
)
_CREDENTIALS = EndpointErrorInfo(
    "Invalid credentials",
    'Run "gcloud auth application-default login" to authenticate',
)
_UNAVAILABLE = EndpointErrorInfo(
    "Service unavailable",
    "Check your internet connection and try again",
    transient=True,
)
_NOT_FOUND = EndpointErrorInfo(
    "Resource not found",
    "Verify the project ID and collection path are correct",
)
_EXHAUSTED = EndpointErrorInfo(
    "Quota exceeded",
    "Try reducing --batch-size or --parallel, or wait and retry later",
    transient=True,
)
_INVALID = EndpointErrorInfo(
    "Invalid argument",
    "Check your query filters and document data",
)
_DEADLINE = EndpointErrorInfo(
    "Request timeout",
    "Try reducing --batch-size or check your network connection",
    transient=True,
)
_EXISTS = EndpointErrorInfo(
    "Document already exists",
    "Use --merge to update existing documents",
)
_ABORTED = EndpointErrorInfo(
    "Operation aborted",
    "A concurrent operation conflicted. Retry the transfer",
    transient=True,
)

_STATUS_CODES: dict[str, EndpointErrorInfo] = {
    "permission-denied": _PERMISSION,
    "permission_denied": _PERMISSION,
    "unauthenticated": _CREDENTIALS,
    "unavailable": _UNAVAILABLE,
    "not-found": _NOT_FOUND,
    "not_found": _NOT_FOUND,
    "resource-exhausted": _EXHAUSTED,
    "resource_exhausted": _EXHAUSTED,
    "invalid-argument": _INVALID,
    "invalid_argument": _INVALID,
    "deadline-exceeded": _DEADLINE,
    "deadline_exceeded": _DEADLINE,
    "already-exists": _EXISTS,
    "already_exists": _EXISTS,
    "aborted": _ABORTED,
}

# google-api-core exception class names
_EXCEPTION_NAMES: dict[str, EndpointErrorInfo] = {
    "PermissionDenied": _PERMISSION,
    "Unauthenticated": _CREDENTIALS,
    "ServiceUnavailable": _UNAVAILABLE,
    "NotFound": _NOT_FOUND,
    "ResourceExhausted": _EXHAUSTED,
    "TooManyRequests": _EXHAUSTED,
    "InvalidArgument": _INVALID,
    "DeadlineExceeded": _DEADLINE,
    "GatewayTimeout": _DEADLINE,
    "AlreadyExists": _EXISTS,
    "Conflict": _EXISTS,
    "Aborted": _ABORTED,
}


def classify_endpoint_error(error: BaseException) -> EndpointErrorInfo:
    """
    Map an endpoint exception to a readable message and suggestion.

    Looks at an explicit ``code`` attribute first, then the exception class
    name, then keywords in the message. Unknown errors keep their message.

    Args:
        error: The exception raised by a database endpoint.

    Returns:
        EndpointErrorInfo describing the failure.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str):
        mapped = _STATUS_CODES.get(code.lower())
        if mapped:
            return mapped

    mapped = _EXCEPTION_NAMES.get(type(error).__name__)
    if mapped:
        return mapped

    if isinstance(error, (ConnectionError, TimeoutError)):
        return _UNAVAILABLE if isinstance(error, ConnectionError) else _DEADLINE

    message = str(error).lower()
    if "credential" in message or "authentication" in message:
        return _CREDENTIALS
    if "permission" in message or "denied" in message:
        return _PERMISSION
    if "unavailable" in message or "network" in message:
        return _UNAVAILABLE
    if "not found" in message or "not_found" in message:
        return _NOT_FOUND
    if "quota" in message or "exhausted" in message or "rate" in message:
        return _EXHAUSTED
    if "timeout" in message or "deadline" in message:
        return _DEADLINE

    return EndpointErrorInfo(str(error) or type(error).__name__)


__all__ = [
    "FscopyError",
    "ConfigurationError",
    "TransferStateError",
    "TransformLoadError",
    "TransferError",
    "OversizedDocumentError",
    "QueryError",
    "BatchCommitError",
    "EndpointErrorInfo",
    "classify_endpoint_error",
]
