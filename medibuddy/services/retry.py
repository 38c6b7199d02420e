"""
Retry helper with exponential backoff and jitter for async operations.
"""
import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional, Tuple, Type, TypeVar

from medibuddy.config import MAX_RETRIES, RETRY_BASE_DELAY_MS, RETRY_JITTER_MS

logger = logging.getLogger(__name__)

T = TypeVar("T")


def backoff_delay_ms(attempt: int, base_delay_ms: int, rand: Callable[[], float] = random.random) -> float:
    """Delay after failed `attempt` (0-based): base * 2^attempt plus [0, 200ms) jitter."""
    return base_delay_ms * (2 ** attempt) + rand() * RETRY_JITTER_MS


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_retries: int = MAX_RETRIES,
    base_delay_ms: int = RETRY_BASE_DELAY_MS,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
    label: Optional[str] = None,
) -> T:
    """
    Run `operation` up to max_retries + 1 times.

    Args:
        operation: Zero-argument coroutine factory
        max_retries: Retries after the first attempt
        base_delay_ms: Base delay for exponential backoff in milliseconds
        retry_on: Exception types eligible for retry; anything else propagates at once
        sleep: Awaitable sleep taking seconds (injectable for tests)
        rand: Source of [0, 1) randomness for jitter
        label: Name used in log messages

    Returns:
        The operation's result

    Raises:
        The last error, unchanged, once attempts are exhausted
        ValueError: If max_retries is negative
    """
    if max_retries < 0:
        raise ValueError(f"max_retries must be >= 0, got {max_retries}")

    name = label or getattr(operation, "__name__", "operation")
    last_error: Optional[BaseException] = None

    for attempt in range(max_retries + 1):
        try:
            return await operation()
        except retry_on as e:
            last_error = e
            if attempt == max_retries:
                break
            delay_ms = backoff_delay_ms(attempt, base_delay_ms, rand)
            logger.warning(
                f"{name} failed (attempt {attempt + 1}/{max_retries + 1}), "
                f"retrying in {delay_ms:.0f}ms: {e}"
            )
            await sleep(delay_ms / 1000.0)

    logger.error(f"{name} failed after {max_retries + 1} attempts: {last_error}")
    raise last_error
