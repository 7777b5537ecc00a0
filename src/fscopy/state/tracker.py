"""
In-memory completion index with throttled persistence.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Iterable
from pathlib import Path

from fscopy.models import TransferStats
from fscopy.state.models import TransferState
from fscopy.state.storage import save_transfer_state

logger = logging.getLogger(__name__)

DEFAULT_BATCH_INTERVAL = 10
DEFAULT_TIME_INTERVAL = 5.0


class StateTracker:
    """
    Tracks completed documents and saves them on a throttle.

    The set index gives O(1) ``is_completed`` checks; the per-path lists keep
    insertion order for the persisted record. A save happens when
    ``batch_interval`` batches have been marked or ``time_interval`` seconds
    have passed since the last save, whichever comes first. Call ``flush``
    before the process exits to persist the tail.

    The tracker is the only writer of the state file during a run; concurrent
    collection tasks serialize on its lock.

    Example:
        >>> tracker = StateTracker(".fscopy-state.json", state)
        >>> if not tracker.is_completed("users", "u1"):
        ...     ...
        >>> await tracker.mark_batch_completed("users", ["u1", "u2"], stats)
        >>> await tracker.flush()
    """

    def __init__(
        self,
        state_file: str | Path,
        state: TransferState,
        *,
        batch_interval: int = DEFAULT_BATCH_INTERVAL,
        time_interval: float = DEFAULT_TIME_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._state_file = Path(state_file)
        self._state = state
        self._batch_interval = batch_interval
        self._time_interval = time_interval
        self._clock = clock

        self._index: dict[str, set[str]] = {}
        self._order: dict[str, list[str]] = {}
        for path, doc_ids in state.completed_docs.items():
            ordered = list(dict.fromkeys(doc_ids))
            self._order[path] = ordered
            self._index[path] = set(ordered)

        self._lock = asyncio.Lock()
        self._dirty = False
        self._batches_since_last_save = 0
        self._last_save = clock()
        self._save_count = 0

    @property
    def state(self) -> TransferState:
        """The state record as of the last save or flush."""
        return self._state

    @property
    def state_file(self) -> Path:
        return self._state_file

    @property
    def completed_count(self) -> int:
        """Total completed document IDs across all collection paths."""
        return sum(len(ids) for ids in self._index.values())

    @property
    def is_dirty(self) -> bool:
        return self._dirty

    @property
    def save_count(self) -> int:
        """Number of state file writes performed by this tracker."""
        return self._save_count

    def is_completed(self, collection_path: str, doc_id: str) -> bool:
        ids = self._index.get(collection_path)
        return ids is not None and doc_id in ids

    def completed_ids(self, collection_path: str) -> list[str]:
        return list(self._order.get(collection_path, ()))

    async def mark_batch_completed(
        self,
        collection_path: str,
        doc_ids: Iterable[str],
        stats: TransferStats,
    ) -> None:
        """
        Record a committed batch and save if a threshold is reached.

        Args:
            collection_path: Source collection path of the batch
            doc_ids: Source document IDs written or intentionally skipped
            stats: Current run counters, snapshotted into the state
        """
        async with self._lock:
            index = self._index.setdefault(collection_path, set())
            order = self._order.setdefault(collection_path, [])
            for doc_id in doc_ids:
                if doc_id not in index:
                    index.add(doc_id)
                    order.append(doc_id)

            self._state.stats = stats.copy().to_dict()
            self._dirty = True
            self._batches_since_last_save += 1

            if self._should_save():
                await self._save()

    def _should_save(self) -> bool:
        if self._batches_since_last_save >= self._batch_interval:
            return True
        return self._clock() - self._last_save >= self._time_interval

    async def _save(self) -> None:
        self._state.completed_docs = {path: list(ids) for path, ids in self._order.items()}
        saved = await asyncio.to_thread(save_transfer_state, self._state_file, self._state)
        if saved:
            self._save_count += 1
            logger.debug(
                "Saved transfer state",
                extra={"state_file": str(self._state_file), "completed": self.completed_count},
            )
        # counters reset even on failure; the in-memory index stays authoritative
        self._last_save = self._clock()
        self._batches_since_last_save = 0
        self._dirty = False

    async def flush(self) -> None:
        """Save if there are unsaved changes."""
        async with self._lock:
            if self._dirty:
                await self._save()


__all__ = ["StateTracker", "DEFAULT_BATCH_INTERVAL", "DEFAULT_TIME_INTERVAL"]
