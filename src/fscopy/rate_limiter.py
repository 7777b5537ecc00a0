"""
Token bucket rate limiter for destination writes.

A single limiter instance is shared by every collection task of a run, so the
refill-and-consume step runs under an ``asyncio.Lock``.
"""

import asyncio
import logging
import math
import time

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Token bucket limiting documents written per second.

    Capacity and refill rate both equal ``docs_per_second``; the bucket starts
    full. When a request cannot be served, the caller sleeps for the missing
    tokens and the bucket is then emptied, without crediting any over-wait.

    Attributes:
        _docs_per_second: Configured rate (0 disables limiting).
        _tokens: Currently available, possibly fractional, tokens.
        _last_refill: Monotonic time of the last refill, in seconds.
        _lock: Serializes refill and consume across concurrent callers.

    Example:
        >>> limiter = RateLimiter(100)
        >>> await limiter.acquire(len(batch))
    """

    def __init__(self, docs_per_second: float) -> None:
        """
        Initialize rate limiter.

        Args:
            docs_per_second: Maximum documents per second (0 = unlimited).
        """
        if docs_per_second < 0:
            raise ValueError(f"docs_per_second must be >= 0, got {docs_per_second}")
        self._docs_per_second = docs_per_second
        self._capacity = float(docs_per_second)
        self._tokens = float(docs_per_second)
        self._rate_per_ms = docs_per_second / 1000.0
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()

    @property
    def is_enabled(self) -> bool:
        """True when a positive rate is configured."""
        return self._docs_per_second > 0

    @property
    def docs_per_second(self) -> float:
        return self._docs_per_second

    @property
    def available_tokens(self) -> float:
        """Tokens as of the last refill (no refill is performed)."""
        return self._tokens

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed_ms = (now - self._last_refill) * 1000.0
        self._tokens = min(self._capacity, self._tokens + elapsed_ms * self._rate_per_ms)
        self._last_refill = now

    async def acquire(self, count: int = 1) -> None:
        """
        Wait until ``count`` tokens are available and consume them.

        Returns immediately when the limiter is disabled.

        Args:
            count: Number of documents about to be written.
        """
        if not self.is_enabled:
            return

        async with self._lock:
            self._refill()

            if self._tokens >= count:
                self._tokens -= count
                return

            wait_ms = math.ceil((count - self._tokens) / self._rate_per_ms)
            logger.debug(
                "Rate limit reached, waiting %d ms",
                wait_ms,
                extra={"requested": count, "available": self._tokens, "wait_ms": wait_ms},
            )
            await asyncio.sleep(wait_ms / 1000.0)
            self._tokens = 0.0
            self._last_refill = time.monotonic()


__all__ = ["RateLimiter"]
