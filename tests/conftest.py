"""
Shared pytest fixtures for the fscopy tests.

This module provides:
- In-memory source and destination databases (source_db, dest_db)
- A configuration factory with test-friendly defaults (make_config)
- A transfer context factory (make_context)
- Retry sleeps patched out (no_retry_sleep)
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, patch

import pytest

from fscopy.config import TransferConfig
from fscopy.models import TransferStats
from fscopy.observability import MockTracer
from fscopy.stores.in_memory import InMemoryDocumentDatabase
from fscopy.stores.interface import DocumentDatabase
from fscopy.transfer.context import TransferContext

# ============================================================================
# Databases
# ============================================================================


@pytest.fixture
def source_db() -> InMemoryDocumentDatabase:
    """Empty in-memory source database."""
    return InMemoryDocumentDatabase("source")


@pytest.fixture
def dest_db() -> InMemoryDocumentDatabase:
    """Empty in-memory destination database."""
    return InMemoryDocumentDatabase("dest")


# ============================================================================
# Configuration and context
# ============================================================================


@pytest.fixture
def state_file(tmp_path: Path) -> Path:
    return tmp_path / "state.json"


@pytest.fixture
def make_config(state_file: Path) -> Callable[..., TransferConfig]:
    """
    Factory for TransferConfig with a live run over ``users`` by default.

    Example:
        config = make_config(batch_size=2, include_subcollections=True)
    """

    def _make(**overrides: Any) -> TransferConfig:
        values: dict[str, Any] = {
            "collections": ["users"],
            "source_project": "source-project",
            "dest_project": "dest-project",
            "dry_run": False,
            "retries": 2,
            "state_file": str(state_file),
        }
        values.update(overrides)
        return TransferConfig(**values)

    return _make


@pytest.fixture
def make_context(
    source_db: InMemoryDocumentDatabase,
    dest_db: InMemoryDocumentDatabase,
    make_config: Callable[..., TransferConfig],
) -> Callable[..., TransferContext]:
    """
    Factory for TransferContext over the source_db/dest_db fixtures.

    Keyword arguments that are TransferContext fields are passed through,
    everything else goes to ``make_config``.
    """

    def _make(
        *,
        source: DocumentDatabase | None = None,
        destination: DocumentDatabase | None = None,
        **kwargs: Any,
    ) -> TransferContext:
        context_fields = {"transform", "tracker", "rate_limiter", "tracer", "stats"}
        ctx_kwargs = {k: kwargs.pop(k) for k in list(kwargs) if k in context_fields}
        ctx_kwargs.setdefault("tracer", MockTracer())
        ctx_kwargs.setdefault("stats", TransferStats())
        return TransferContext(
            source=source or source_db,
            destination=destination or dest_db,
            config=make_config(**kwargs),
            **ctx_kwargs,
        )

    return _make


# ============================================================================
# Time
# ============================================================================


@pytest.fixture
def no_retry_sleep() -> Iterator[AsyncMock]:
    """Patch the backoff sleep in fscopy.retry so retries run instantly."""
    with patch("fscopy.retry.asyncio.sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep
