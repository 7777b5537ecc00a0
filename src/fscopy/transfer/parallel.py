"""
Bounded-concurrency fan-out over top-level collections.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


@dataclass
class ParallelResult(Generic[T, R]):
    """
    Outcome of ``process_in_parallel``.

    Attributes:
        results: Successful results, in input order
        errors: (item, error) pairs for failed items, in input order
        skipped: Items never started because a stop error occurred
    """

    results: list[R] = field(default_factory=list)
    errors: list[tuple[T, Exception]] = field(default_factory=list)
    skipped: list[T] = field(default_factory=list)


async def process_in_parallel(
    items: Sequence[T],
    concurrency: int,
    processor: Callable[[T], Awaitable[R]],
    *,
    stop_on: tuple[type[Exception], ...] = (),
) -> ParallelResult[T, R]:
    """
    Run ``processor`` over ``items`` with at most ``concurrency`` in flight.

    Errors are collected rather than raised. After an error matching
    ``stop_on``, items that have not started yet are skipped; items already
    running finish normally.

    Args:
        items: Work items
        concurrency: Maximum concurrent calls (1 = sequential)
        processor: Async function applied to each item
        stop_on: Exception types that stop scheduling of further items

    Example:
        >>> result = await process_in_parallel(["users", "orders"], 2, walker.walk)
        >>> for item, error in result.errors:
        ...     print(item, error)
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    semaphore = asyncio.Semaphore(concurrency)
    stopped = asyncio.Event()
    outcomes: list[tuple[str, object]] = [("skipped", None)] * len(items)

    async def run(index: int, item: T) -> None:
        async with semaphore:
            if stopped.is_set():
                return
            try:
                outcomes[index] = ("ok", await processor(item))
            except Exception as e:
                outcomes[index] = ("error", e)
                if stop_on and isinstance(e, stop_on):
                    stopped.set()

    await asyncio.gather(*(run(index, item) for index, item in enumerate(items)))

    result: ParallelResult[T, R] = ParallelResult()
    for item, (status, value) in zip(items, outcomes, strict=True):
        if status == "ok":
            result.results.append(value)  # type: ignore[arg-type]
        elif status == "error":
            result.errors.append((item, value))  # type: ignore[arg-type]
        else:
            result.skipped.append(item)
    if result.skipped:
        logger.debug("Skipped %d items after a stop error", len(result.skipped))
    return result


__all__ = ["ParallelResult", "process_in_parallel"]
