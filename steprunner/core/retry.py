"""
Retry logic with exponential backoff for transient failures.

Wraps arbitrary async operations with bounded, strictly sequential retries.
Errors are classified against a vocabulary of case-insensitive substrings;
anything outside the vocabulary fails fast without another attempt.
"""

import asyncio
import functools
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


DEFAULT_RETRYABLE_ERRORS = [
    "timeout",
    "etimedout",
    "econnreset",
    "econnrefused",
    "enotfound",
    "network",
    "networkerror",
    "timeouterror",
]


@dataclass
class RetryOptions:
    """Configuration for retry behaviour."""

    max_attempts: int = 3
    initial_delay_ms: float = 1000
    backoff_multiplier: float = 2.0
    max_delay_ms: float = 8000
    retryable_errors: Optional[List[str]] = None

    def __post_init__(self):
        """Validate configuration."""
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ValueError("max_attempts must be a positive integer")
        if self.initial_delay_ms < 0:
            raise ValueError("initial_delay_ms must be non-negative")
        if self.max_delay_ms < 0:
            raise ValueError("max_delay_ms must be non-negative")
        if self.backoff_multiplier <= 0:
            raise ValueError("backoff_multiplier must be positive")


@dataclass
class RetryResult(Generic[T]):
    """Outcome of a retried operation that never raises."""

    success: bool
    attempts: int
    result: Optional[T] = None
    error: Optional[BaseException] = field(default=None)


def is_retryable_error(
    error: BaseException, retryable_errors: Optional[List[str]]
) -> bool:
    """
    Check whether an error is transient.

    The error message and the exception class name are both matched against
    the vocabulary. With no vocabulary every error counts as transient.
    """
    if retryable_errors is None:
        return True

    message = str(error).lower()
    name = type(error).__name__.lower()

    return any(
        token.lower() in message or token.lower() in name
        for token in retryable_errors
    )


def calculate_delay(attempt: int, options: RetryOptions) -> float:
    """Delay in milliseconds to wait after the given (1-based) failed attempt."""
    delay = options.initial_delay_ms * (options.backoff_multiplier ** (attempt - 1))
    return min(delay, options.max_delay_ms)


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
) -> T:
    """
    Await ``func`` until it succeeds, retrying transient failures.

    Args:
        func: Zero-argument coroutine function to call
        options: Retry configuration, defaults to ``RetryOptions()``

    Returns:
        Whatever ``func`` returned on its first successful attempt

    Raises:
        The last error raised by ``func`` once attempts are exhausted, or the
        first non-retryable error immediately.
    """
    opts = options or RetryOptions()

    for attempt in range(1, opts.max_attempts + 1):
        try:
            result = await func()
            if attempt > 1:
                logger.info(f"Succeeded on attempt {attempt}/{opts.max_attempts}")
            return result

        except Exception as e:
            if not is_retryable_error(e, opts.retryable_errors):
                logger.debug(f"Not retrying non-transient error on attempt {attempt}: {e}")
                raise

            if attempt >= opts.max_attempts:
                logger.error(f"All {opts.max_attempts} attempts failed: {e}")
                raise

            delay = calculate_delay(attempt, opts)
            logger.warning(
                f"Attempt {attempt}/{opts.max_attempts} failed, "
                f"retrying in {delay:.0f}ms: {str(e)[:200]}"
            )
            await asyncio.sleep(delay / 1000)

    # max_attempts >= 1 guarantees the loop returns or raises
    raise RuntimeError("retry loop exited without result")


async def retry_with_backoff_safe(
    func: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
) -> RetryResult[T]:
    """
    Same as ``retry_with_backoff`` but reports the outcome instead of raising.
    """
    opts = options or RetryOptions()
    last_error: Optional[BaseException] = None

    for attempt in range(1, opts.max_attempts + 1):
        try:
            result = await func()
            return RetryResult(success=True, result=result, attempts=attempt)

        except Exception as e:
            last_error = e

            if not is_retryable_error(e, opts.retryable_errors):
                return RetryResult(success=False, error=e, attempts=attempt)

            if attempt < opts.max_attempts:
                await asyncio.sleep(calculate_delay(attempt, opts) / 1000)

    return RetryResult(success=False, error=last_error, attempts=opts.max_attempts)


def make_retryable(
    options: Optional[RetryOptions] = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Decorator retrying every call of an async function with fixed options.

    Example:
        @make_retryable(RetryOptions(max_attempts=3, retryable_errors=["timeout"]))
        async def fetch(url): ...
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            return await retry_with_backoff(lambda: func(*args, **kwargs), options)

        return wrapper

    return decorator
