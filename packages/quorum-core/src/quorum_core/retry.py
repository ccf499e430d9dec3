"""
Retry utilities with exponential backoff for Quorum.

The lifecycle service uses these helpers to re-run a load, validate,
compute and compare-and-set cycle when another writer won the race for
an artifact's version.

Usage:
    from quorum_core.retry import retry_async, CAS_RETRY_CONFIG

    artifact = await retry_async(apply_change, artifact_id, config=CAS_RETRY_CONFIG)

    # Or as a decorator
    @retry(max_retries=5, base_delay=0.5)
    async def call_node():
        ...
"""
from __future__ import annotations

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import (
    Awaitable,
    Callable,
    Optional,
    ParamSpec,
    Type,
    TypeVar,
    Union,
)

from .config import QuorumSettings, load_settings
from .constants import RetryDefaults
from .exceptions import StaleVersionConflictError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    Attributes:
        max_retries: Maximum number of retry attempts (0 means no retries)
        base_delay: Initial delay between retries in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential backoff calculation
        jitter: Maximum jitter factor (0.0-1.0) added to delays
        retryable_exceptions: Tuple of exception types that trigger retries
        non_retryable_exceptions: Tuple of exception types that should not be retried
        on_retry: Optional callback called before each retry
    """

    max_retries: int = RetryDefaults.DEFAULT_MAX_RETRIES
    base_delay: float = RetryDefaults.DEFAULT_BASE_DELAY
    max_delay: float = RetryDefaults.DEFAULT_MAX_DELAY
    exponential_base: float = RetryDefaults.DEFAULT_EXPONENTIAL_BASE
    jitter: float = RetryDefaults.DEFAULT_JITTER
    retryable_exceptions: tuple[Type[BaseException], ...] = (Exception,)
    non_retryable_exceptions: tuple[Type[BaseException], ...] = ()
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None

    def calculate_delay(self, attempt: int) -> float:
        """Calculate delay for the given attempt number (0-based).

        Uses exponential backoff with optional jitter.
        """
        delay = self.base_delay * (self.exponential_base ** attempt)
        delay = min(delay, self.max_delay)

        if self.jitter > 0:
            jitter_range = delay * self.jitter
            delay = delay + random.uniform(-jitter_range, jitter_range)

        return max(0.0, delay)

    def should_retry(self, exception: BaseException) -> bool:
        """Determine if the exception should trigger a retry."""
        # Non-retryable takes precedence
        if isinstance(exception, self.non_retryable_exceptions):
            return False
        return isinstance(exception, self.retryable_exceptions)


# Optimistic-concurrency retries: only version conflicts are retried,
# every other error reaches the caller untouched.
CAS_RETRY_CONFIG = RetryConfig(
    max_retries=RetryDefaults.CAS_MAX_RETRIES,
    base_delay=RetryDefaults.CAS_BASE_DELAY,
    max_delay=RetryDefaults.CAS_MAX_DELAY,
    jitter=0.5,
    retryable_exceptions=(StaleVersionConflictError,),
)


def cas_retry_config(settings: Optional[QuorumSettings] = None) -> RetryConfig:
    """CAS_RETRY_CONFIG with the bounds from `cas_max_retries`, `cas_base_delay`
    and `cas_max_delay`."""
    settings = settings or load_settings()
    return RetryConfig(
        max_retries=settings.cas_max_retries,
        base_delay=settings.cas_base_delay,
        max_delay=settings.cas_max_delay,
        jitter=CAS_RETRY_CONFIG.jitter,
        retryable_exceptions=CAS_RETRY_CONFIG.retryable_exceptions,
    )


@dataclass
class RetryStats:
    """Statistics about retry execution.

    Attributes:
        attempts: Total number of attempts (including initial)
        total_delay: Total delay time in seconds
        success: Whether the operation eventually succeeded
        last_exception: The last exception if operation failed
    """

    attempts: int = 0
    total_delay: float = 0.0
    success: bool = False
    last_exception: Optional[BaseException] = None


class RetryExhausted(Exception):
    """Raised when all retry attempts have been exhausted.

    Attributes:
        stats: Statistics about the retry attempts
        original_exception: The last exception that was raised
    """

    def __init__(
        self,
        message: str,
        stats: RetryStats,
        original_exception: Optional[BaseException],
    ) -> None:
        super().__init__(message)
        self.stats = stats
        self.original_exception = original_exception


async def retry_async(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    config: Optional[RetryConfig] = None,
    **kwargs: P.kwargs,
) -> T:
    """Execute an async function with retry logic.

    Exceptions the config does not retry propagate unchanged on any
    attempt. Retryable exceptions surviving the last attempt are wrapped
    in RetryExhausted.

    Raises:
        RetryExhausted: If all retry attempts fail
    """
    if config is None:
        config = RetryConfig()

    stats = RetryStats()
    last_exception: Optional[BaseException] = None

    for attempt in range(config.max_retries + 1):
        stats.attempts = attempt + 1

        try:
            result = await func(*args, **kwargs)
            stats.success = True
            return result

        except Exception as e:
            last_exception = e
            stats.last_exception = e

            if not config.should_retry(e):
                raise

            if attempt >= config.max_retries:
                break

            delay = config.calculate_delay(attempt)
            stats.total_delay += delay

            logger.debug(
                f"Retry {attempt + 1}/{config.max_retries} for "
                f"{getattr(func, '__name__', func)} after {type(e).__name__}. "
                f"Waiting {delay:.3f}s"
            )

            if config.on_retry:
                config.on_retry(attempt + 1, e, delay)

            await asyncio.sleep(delay)

    logger.warning(
        f"All {config.max_retries + 1} attempts failed for "
        f"{getattr(func, '__name__', func)}: {last_exception}"
    )
    raise RetryExhausted(
        f"All {config.max_retries + 1} attempts failed for {getattr(func, '__name__', func)}",
        stats=stats,
        original_exception=last_exception,
    ) from last_exception


def retry(
    func: Optional[Callable[P, Awaitable[T]]] = None,
    /,
    *,
    max_retries: int = RetryDefaults.DEFAULT_MAX_RETRIES,
    base_delay: float = RetryDefaults.DEFAULT_BASE_DELAY,
    max_delay: float = RetryDefaults.DEFAULT_MAX_DELAY,
    jitter: float = RetryDefaults.DEFAULT_JITTER,
    retryable_exceptions: tuple[Type[BaseException], ...] = (Exception,),
    non_retryable_exceptions: tuple[Type[BaseException], ...] = (),
    config: Optional[RetryConfig] = None,
) -> Union[
    Callable[P, Awaitable[T]],
    Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]],
]:
    """Decorator to add retry logic to async functions.

    Can be used with or without arguments:

        @retry
        async def func(): ...

        @retry(config=CAS_RETRY_CONFIG)
        async def func(): ...
    """

    def decorator(f: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        retry_config = config or RetryConfig(
            max_retries=max_retries,
            base_delay=base_delay,
            max_delay=max_delay,
            jitter=jitter,
            retryable_exceptions=retryable_exceptions,
            non_retryable_exceptions=non_retryable_exceptions,
        )

        @functools.wraps(f)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return await retry_async(f, *args, config=retry_config, **kwargs)

        return wrapper

    if func is not None:
        return decorator(func)

    return decorator


__all__ = [
    "RetryConfig",
    "RetryStats",
    "RetryExhausted",
    "CAS_RETRY_CONFIG",
    "cas_retry_config",
    "retry_async",
    "retry",
]
