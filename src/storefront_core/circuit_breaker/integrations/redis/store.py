from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import redis
import redis.asyncio

from storefront_core.circuit_breaker.storage import (
    AbstractKeyValueStore,
    StoreUnavailableError,
)

T = TypeVar("T")


def _ttl_millis(ttl: float) -> int:
    return max(int(ttl * 1000), 1)


class RedisKeyValueStore(AbstractKeyValueStore):
    """Key-value store shared across processes through Redis."""

    def __init__(self, client: redis.asyncio.Redis) -> None:
        """Create a store bound to one Redis client.

        Args:
            client: Async Redis client. Responses may be bytes or decoded.
        """
        self._client = client

    @classmethod
    def from_url(cls, url: str, **kwargs: Any) -> RedisKeyValueStore:
        """Build a store from a ``redis://`` URL."""
        return cls(redis.asyncio.Redis.from_url(url, **kwargs))

    async def _run(self, op: str, key: str, call: Callable[[], Awaitable[T]]) -> T:
        try:
            return await call()
        except redis.RedisError as error:
            raise StoreUnavailableError(f"redis {op} failed for {key!r}") from error

    async def get(self, key: str) -> str | None:
        raw = await self._run("get", key, lambda: self._client.get(key))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return str(raw)

    async def set(self, key: str, value: str, ttl: float) -> None:
        await self._run(
            "set", key, lambda: self._client.set(key, value, px=_ttl_millis(ttl))
        )

    async def increment(self, key: str, ttl: float) -> int:
        """Increment inside one transaction that creates the key with its expiry.

        ``SET NX PX`` and ``INCR`` run as one MULTI/EXEC, so a counter never
        exists without an expiry. An existing key keeps its current expiry.
        """

        async def _incr() -> list[Any]:
            async with self._client.pipeline(transaction=True) as pipe:
                pipe.set(key, 0, nx=True, px=_ttl_millis(ttl))
                pipe.incr(key)
                return await pipe.execute()

        results = await self._run("incr", key, _incr)
        return int(results[-1])

    async def delete(self, key: str) -> None:
        await self._run("delete", key, lambda: self._client.delete(key))

    async def aclose(self) -> None:
        """Close the underlying client connection pool."""
        await self._client.aclose()
