"""
Shared collaborators of one transfer run.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from fscopy.config import TransferConfig
from fscopy.documents.values import DocumentData
from fscopy.models import ConflictInfo, TransferStats
from fscopy.observability import NullTracer, Tracer
from fscopy.rate_limiter import RateLimiter
from fscopy.retry import RetryConfig
from fscopy.state.tracker import StateTracker
from fscopy.stores.interface import DocumentDatabase

# transform(data, {"id": ..., "path": ...}) -> data, or None to skip the document
TransformFunction = Callable[[DocumentData, dict[str, str]], DocumentData | None]


@dataclass
class TransferContext:
    """
    Everything the walker, processor and committer need for a run.

    Built once by the orchestrator and passed explicitly; no component keeps
    module-level database handles.
    """

    source: DocumentDatabase
    destination: DocumentDatabase
    config: TransferConfig
    stats: TransferStats = field(default_factory=TransferStats)
    transform: TransformFunction | None = None
    tracker: StateTracker | None = None
    rate_limiter: RateLimiter | None = None
    tracer: Tracer = field(default_factory=NullTracer)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("fscopy.transfer"))
    conflicts: list[ConflictInfo] = field(default_factory=list)

    @property
    def retry_config(self) -> RetryConfig:
        return RetryConfig(retries=self.config.retries)

    def retry_logger(self, description: str) -> Callable[[int, int, BaseException, float], Any]:
        """Build an ``on_retry`` callback that logs through the run logger."""

        def on_retry(attempt: int, max_retries: int, error: BaseException, delay: float) -> None:
            self.logger.warning(
                "Retry %d/%d for %s: %s",
                attempt,
                max_retries,
                description,
                error,
                extra={"operation": description, "delay_seconds": delay},
            )

        return on_retry


__all__ = ["TransferContext", "TransformFunction"]
