"""
fscopy - Copy Firestore collections between projects.

This library provides:
- Recursive collection transfer with filters, renames and ID rewriting
- Resumable transfers backed by an atomically saved state file
- Retry with exponential backoff and token bucket rate limiting
- Conflict detection and post-write integrity verification
- Firestore, SQLite and in-memory database endpoints
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("fscopy")
except PackageNotFoundError:
    # Package not installed (running from source without install)
    __version__ = "0.0.0.dev0"

from fscopy.config import (
    TransferConfig,
    WhereFilter,
    build_config,
    load_config_file,
    parse_where,
    validate_config,
)
from fscopy.exceptions import (
    BatchCommitError,
    ConfigurationError,
    FscopyError,
    OversizedDocumentError,
    QueryError,
    TransferError,
    TransferStateError,
    TransformLoadError,
)
from fscopy.models import CollectionCount, ConflictInfo, TransferResult, TransferStats
from fscopy.orchestrator import run_transfer
from fscopy.rate_limiter import RateLimiter
from fscopy.retry import RetryConfig, calculate_backoff, with_retry
from fscopy.stores import (
    DocumentDatabase,
    DocumentSnapshot,
    InMemoryDocumentDatabase,
    SQLiteDocumentDatabase,
    create_database,
    open_databases,
)

__all__ = [
    "__version__",
    # Configuration
    "TransferConfig",
    "WhereFilter",
    "build_config",
    "load_config_file",
    "parse_where",
    "validate_config",
    # Exceptions
    "FscopyError",
    "ConfigurationError",
    "TransferStateError",
    "TransformLoadError",
    "TransferError",
    "OversizedDocumentError",
    "QueryError",
    "BatchCommitError",
    # Results
    "TransferStats",
    "TransferResult",
    "ConflictInfo",
    "CollectionCount",
    # Engine
    "run_transfer",
    "RateLimiter",
    "RetryConfig",
    "calculate_backoff",
    "with_retry",
    # Databases
    "DocumentDatabase",
    "DocumentSnapshot",
    "InMemoryDocumentDatabase",
    "SQLiteDocumentDatabase",
    "create_database",
    "open_databases",
]
