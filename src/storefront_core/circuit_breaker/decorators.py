"""Decorator form of ``CircuitBreaker.call``."""

import functools
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

from storefront_core.circuit_breaker.breaker import CircuitBreaker

T = TypeVar("T")
P = ParamSpec("P")


def circuit_protected(
    breaker: CircuitBreaker,
    *,
    fallback: Callable[P, T] | Callable[P, Awaitable[T]] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """Route every call of the decorated coroutine function through ``breaker``.

    Args:
        breaker: Breaker guarding the decorated function.
        fallback: Optional callable invoked with the same arguments when the
            circuit is open or the decorated function fails.

    Returns:
        Decorator producing an async wrapper with the original signature.
    """

    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound_fallback = (
                None
                if fallback is None
                else functools.partial(fallback, *args, **kwargs)
            )
            return await breaker.call(
                functools.partial(func, *args, **kwargs),
                bound_fallback,
            )

        return wrapper

    return decorator
