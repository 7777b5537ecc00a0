"""
Retry utilities for handling transient endpoint failures.

Provides exponential backoff for database reads and batch commits:

- RetryConfig: Configuration for retry behavior
- calculate_backoff: Delay before a given retry
- with_retry: Retry an async operation with exponential backoff
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# on_retry(attempt, max_attempts, error, delay_seconds)
RetryCallback = Callable[[int, int, BaseException, float], None]


@dataclass(frozen=True)
class RetryConfig:
    """
    Configuration for retry behavior.

    Attributes:
        retries: Number of retries after the first attempt (0 = single attempt)
        base_delay: Delay in seconds before the first retry
        max_delay: Upper bound in seconds for any single delay

    Example:
        >>> config = RetryConfig(retries=5, base_delay=0.1, max_delay=0.5)
        >>> config.max_attempts
        6
    """

    retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}. Use 0 for no retries.")

        if self.base_delay < 0:
            raise ValueError(f"base_delay must be non-negative, got {self.base_delay}.")

        if self.max_delay < self.base_delay:
            raise ValueError(
                f"max_delay ({self.max_delay}) must be >= base_delay ({self.base_delay})."
            )

    @property
    def max_attempts(self) -> int:
        """Total number of attempts including the first one."""
        return self.retries + 1


def calculate_backoff(attempt: int, config: RetryConfig) -> float:
    """
    Calculate the delay before a retry.

    Args:
        attempt: Retry number, 1-based (1 = delay after the first failure)
        config: Retry configuration

    Returns:
        ``min(base_delay * 2 ** (attempt - 1), max_delay)`` in seconds

    Example:
        >>> config = RetryConfig(base_delay=1.0, max_delay=30.0)
        >>> calculate_backoff(1, config)
        1.0
        >>> calculate_backoff(4, config)
        8.0
    """
    delay = config.base_delay * (2 ** (attempt - 1))
    return min(delay, config.max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    config: RetryConfig | None = None,
    *,
    on_retry: RetryCallback | None = None,
    operation_name: str = "operation",
) -> T:
    """
    Execute an async operation, retrying failures with exponential backoff.

    The operation runs at most ``config.retries + 1`` times. ``on_retry`` is
    called before each backoff sleep, never after the final attempt. When every
    attempt fails, the last error is raised unchanged.

    Args:
        operation: Async function to execute
        config: Retry configuration (uses defaults if None)
        on_retry: Callback receiving (attempt, max_attempts, error, delay)
        operation_name: Name for logging purposes

    Returns:
        Result of the first successful attempt

    Raises:
        Exception: The error of the last attempt when all attempts fail

    Example:
        >>> docs = await with_retry(
        ...     lambda: source.query("users"),
        ...     RetryConfig(retries=3),
        ...     operation_name="query users",
        ... )
    """
    config = config or RetryConfig()
    max_attempts = config.max_attempts

    for attempt in range(1, max_attempts + 1):
        try:
            result = await operation()
        except Exception as e:
            if attempt >= max_attempts:
                logger.error(
                    "All retries exhausted for %s",
                    operation_name,
                    extra={
                        "operation": operation_name,
                        "attempts": attempt,
                        "error": str(e),
                        "error_type": type(e).__name__,
                    },
                )
                raise

            delay = calculate_backoff(attempt, config)
            logger.warning(
                "Retrying %s after failure (%d/%d)",
                operation_name,
                attempt,
                config.retries,
                extra={
                    "operation": operation_name,
                    "attempt": attempt,
                    "max_retries": config.retries,
                    "delay_seconds": delay,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            if on_retry is not None:
                on_retry(attempt, config.retries, e, delay)
            await asyncio.sleep(delay)
        else:
            if attempt > 1:
                logger.info(
                    "Operation %s succeeded after retry",
                    operation_name,
                    extra={"operation": operation_name, "attempt": attempt},
                )
            return result

    # Unreachable: the loop either returns or raises
    raise AssertionError("with_retry loop exited without a result")


__all__ = [
    "RetryConfig",
    "RetryCallback",
    "calculate_backoff",
    "with_retry",
]
