from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    stop_never,
    wait_exponential_jitter,
)
from tenacity.retry import retry_base

from storefront_core.circuit_breaker import CircuitBreaker, CircuitOpenError
from storefront_core.errors import TransientError

T = TypeVar("T")


@dataclass(frozen=True)
class RetryBackoffPolicy:
    """Configuration for retry attempt count and backoff boundaries."""

    attempts: int | None
    min_seconds: float
    max_seconds: float

    def __post_init__(self) -> None:
        if self.attempts is not None and self.attempts < 1:
            raise ValueError("attempts must be >= 1 when provided")
        if self.min_seconds < 0:
            raise ValueError("min_seconds must be >= 0")
        if self.max_seconds < 0:
            raise ValueError("max_seconds must be >= 0")
        if self.max_seconds < self.min_seconds:
            raise ValueError("max_seconds must be >= min_seconds")


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, CircuitOpenError):
        return False
    return isinstance(error, TransientError)


retry_if_transient = retry_if_exception(_is_retryable)


def build_exponential_jitter_retrying(
    *,
    retry: retry_base,
    policy: RetryBackoffPolicy,
    sleep: Callable[[float], Awaitable[None]] | None = None,
    before_sleep: Callable[[RetryCallState], None] | None = None,
    reraise: bool = True,
) -> AsyncRetrying:
    """Build an ``AsyncRetrying`` with exponential jitter backoff."""
    stop = (
        stop_never if policy.attempts is None else stop_after_attempt(policy.attempts)
    )
    wait = wait_exponential_jitter(
        initial=policy.min_seconds,
        max=policy.max_seconds,
    )
    if sleep is None:
        return AsyncRetrying(
            retry=retry,
            wait=wait,
            stop=stop,
            before_sleep=before_sleep,
            reraise=reraise,
        )
    return AsyncRetrying(
        retry=retry,
        wait=wait,
        stop=stop,
        sleep=sleep,
        before_sleep=before_sleep,
        reraise=reraise,
    )


async def call_with_retry(
    breaker: CircuitBreaker,
    operation: Callable[[], T] | Callable[[], Awaitable[T]],
    *,
    policy: RetryBackoffPolicy,
    fallback: Callable[[], T] | Callable[[], Awaitable[T]] | None = None,
    sleep: Callable[[float], Awaitable[None]] | None = None,
) -> T:
    """Retry ``breaker.call`` on transient failures.

    Each attempt is one ``breaker.call``, so every failed attempt counts
    toward the breaker's threshold. ``CircuitOpenError`` is raised at once.
    """
    retrying = build_exponential_jitter_retrying(
        retry=retry_if_transient,
        policy=policy,
        sleep=sleep,
    )
    return await retrying(breaker.call, operation, fallback)
