"""
Retry logic with capped exponential backoff.

RetryPolicy describes the schedule; retry_async drives a coroutine through
it and retry_with_backoff is the decorator form for fixed call sites.
"""

import asyncio
import functools
import time
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, Field

from shared.config import settings
from shared.errors import RetryableError, RateLimitError
from shared.logging import get_logger

T = TypeVar("T")
logger = get_logger("retry")

SleepFunc = Callable[[float], Awaitable[Any]]
OnRetry = Callable[[int, BaseException, float], Any]


class RetryPolicy(BaseModel):
    """Backoff schedule: delay = base_delay * multiplier ** attempt, capped at max_delay."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    max_delay: Optional[float] = Field(default=None, ge=0)

    def delay_for(self, attempt: int) -> float:
        """
        Delay to wait after the given zero-based failed attempt.

        With base 1s, multiplier 2 and cap 10s: 1, 2, 4, 8, 10, 10...
        """
        delay = self.base_delay * (self.multiplier ** attempt)
        if self.max_delay is not None:
            delay = min(delay, self.max_delay)
        return delay

    @classmethod
    def for_providers(cls) -> "RetryPolicy":
        """Policy for single provider calls."""
        return cls(
            max_attempts=settings.provider_max_attempts,
            base_delay=settings.provider_base_delay,
            multiplier=settings.provider_backoff_multiplier,
            max_delay=settings.provider_max_delay,
        )

    @classmethod
    def for_jobs(cls) -> "RetryPolicy":
        """Policy for whole-job retries in the scheduler."""
        return cls(
            max_attempts=settings.job_max_attempts,
            base_delay=settings.job_backoff_base,
            multiplier=2.0,
        )


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: Optional[RetryPolicy] = None,
    retryable_exceptions: Tuple[Type[BaseException], ...] = (RetryableError, RateLimitError),
    is_retryable: Optional[Callable[[BaseException], bool]] = None,
    on_retry: Optional[OnRetry] = None,
    sleep: SleepFunc = asyncio.sleep,
    **kwargs: Any
) -> T:
    """
    Await func(*args, **kwargs), retrying on retryable failures.

    Args:
        func: Coroutine function to call
        policy: Backoff schedule (default: RetryPolicy())
        retryable_exceptions: Exception types eligible for retry
        is_retryable: Optional predicate refining retryable_exceptions
        on_retry: Called as on_retry(attempt, error, delay) before each sleep
        sleep: Awaitable sleep, injectable for tests

    Returns:
        Result of the first successful call

    Raises:
        The last exception once attempts are exhausted, or any
        non-retryable exception immediately.
    """
    policy = policy or RetryPolicy()
    name = getattr(func, "__name__", repr(func))

    for attempt in range(policy.max_attempts):
        try:
            return await func(*args, **kwargs)
        except retryable_exceptions as e:
            if is_retryable is not None and not is_retryable(e):
                raise
            if attempt >= policy.max_attempts - 1:
                logger.error(
                    f"All {policy.max_attempts} retry attempts failed for {name}",
                    extra={"error": str(e)}
                )
                raise
            delay = policy.delay_for(attempt)
            logger.warning(
                f"Retry attempt {attempt + 1}/{policy.max_attempts} for {name} "
                f"after {delay}s delay",
                extra={"error": str(e), "attempt": attempt + 1}
            )
            if on_retry is not None:
                on_retry(attempt + 1, e, delay)
            await sleep(delay)

    raise RuntimeError(f"Function {name} failed after {policy.max_attempts} attempts")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 2,
    retryable_exceptions: Tuple[Type[Exception], ...] = (RetryableError, RateLimitError),
    max_delay: Optional[float] = None
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_attempts: Maximum number of attempts (default: 3)
        base_delay: Base delay in seconds (default: 2)
        retryable_exceptions: Exception types to retry on
        max_delay: Optional cap on a single delay

    Example:
        @retry_with_backoff(max_attempts=2, base_delay=1)
        async def list_models():
            ...
    """
    policy = RetryPolicy(max_attempts=max_attempts, base_delay=base_delay, max_delay=max_delay)

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        if asyncio.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args: Any, **kwargs: Any) -> T:
                return await retry_async(
                    func,
                    *args,
                    policy=policy,
                    retryable_exceptions=retryable_exceptions,
                    **kwargs
                )

            return async_wrapper

        @functools.wraps(func)
        def sync_wrapper(*args: Any, **kwargs: Any) -> T:
            for attempt in range(policy.max_attempts):
                try:
                    return func(*args, **kwargs)
                except retryable_exceptions as e:
                    if attempt >= policy.max_attempts - 1:
                        logger.error(
                            f"All {policy.max_attempts} retry attempts failed for {func.__name__}",
                            extra={"error": str(e)}
                        )
                        raise
                    delay = policy.delay_for(attempt)
                    logger.warning(
                        f"Retry attempt {attempt + 1}/{policy.max_attempts} for {func.__name__} "
                        f"after {delay}s delay",
                        extra={"error": str(e), "attempt": attempt + 1}
                    )
                    time.sleep(delay)
            raise RuntimeError(f"Function {func.__name__} failed after {policy.max_attempts} attempts")

        return sync_wrapper

    return decorator
