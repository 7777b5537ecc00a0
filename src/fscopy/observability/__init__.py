"""
Observability for fscopy: tracer abstraction and span attribute names.

Example:
    >>> from fscopy.observability import create_tracer, ATTR_COLLECTION_PATH
    >>> tracer = create_tracer(__name__)
    >>> with tracer.span("fscopy.walker.collection", {ATTR_COLLECTION_PATH: "users"}):
    ...     pass
"""

from fscopy.observability.attributes import (
    ATTR_BATCH_SIZE,
    ATTR_COLLECTION_COUNT,
    ATTR_COLLECTION_PATH,
    ATTR_CONFLICT_COUNT,
    ATTR_DEPTH,
    ATTR_DEST_COLLECTION_PATH,
    ATTR_DESTINATION,
    ATTR_DOCUMENT_COUNT,
    ATTR_DRY_RUN,
    ATTR_MERGE,
    ATTR_RESUME,
    ATTR_SOURCE,
)
from fscopy.observability.tracer import (
    MockTracer,
    NullTracer,
    OpenTelemetryTracer,
    Tracer,
    create_tracer,
)

__all__ = [
    # Tracer
    "Tracer",
    "NullTracer",
    "OpenTelemetryTracer",
    "MockTracer",
    "create_tracer",
    # Attributes
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
