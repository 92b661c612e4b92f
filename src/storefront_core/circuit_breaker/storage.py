"""Shared key-value store backing circuit breaker state.

Storage is intentionally decoupled from breaker logic. Breakers keep no state
in memory; everything lives behind ``AbstractKeyValueStore`` so that any number
of breaker instances (and processes, with a networked backend such as Redis)
observe the same circuit.

Values are strings. Counters created by ``increment`` read back as their
decimal representation.
"""

import asyncio
import sys
import threading
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass

from storefront_core.errors import TransientError


class StoreUnavailableError(TransientError):
    """Raised when a store backend cannot be reached."""


class AbstractKeyValueStore(ABC):
    """Abstract key-value store interface with per-key expiry."""

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the value for ``key`` or ``None`` when absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: float) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds."""

    @abstractmethod
    async def increment(self, key: str, ttl: float) -> int:
        """Atomically increment ``key`` and return the new value.

        An absent key is created at 1 with ``ttl``. Incrementing an existing
        key keeps its current expiry.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Removing an absent key is a no-op."""


@dataclass(slots=True)
class _Entry:
    value: str
    expires_at: float


class InMemoryKeyValueStore(AbstractKeyValueStore):
    """Process-local store with per-key cooperative + optional thread locks."""

    def __init__(self, *, clock: Callable[[], float] | None = None) -> None:
        """Initialize entry and lock registries.

        Args:
            clock: Monotonic clock in seconds. Defaults to ``time.monotonic``.
        """
        self._clock = time.monotonic if clock is None else clock
        self._entries: dict[str, _Entry] = {}
        self._async_locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)
        self._thread_locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        is_gil_enabled = getattr(sys, "_is_gil_enabled", None)
        self._gil_enabled = True if is_gil_enabled is None else bool(is_gil_enabled())

    @asynccontextmanager
    async def _locked(self, key: str) -> AsyncIterator[None]:
        async_lock = self._async_locks[key]
        if self._gil_enabled:
            await async_lock.acquire()
            try:
                yield
            finally:
                async_lock.release()
            return

        thread_lock = self._thread_locks[key]
        thread_lock.acquire()
        try:
            await async_lock.acquire()
        except Exception:
            thread_lock.release()
            raise
        try:
            yield
        finally:
            async_lock.release()
            thread_lock.release()

    def _live_entry(self, key: str) -> _Entry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            del self._entries[key]
            return None
        return entry

    async def get(self, key: str) -> str | None:
        """Return the live value for ``key``, dropping it if expired."""
        async with self._locked(key):
            entry = self._live_entry(key)
            return None if entry is None else entry.value

    async def set(self, key: str, value: str, ttl: float) -> None:
        """Store ``value`` and restart the expiry window for ``key``."""
        async with self._locked(key):
            self._entries[key] = _Entry(value=value, expires_at=self._clock() + ttl)

    async def increment(self, key: str, ttl: float) -> int:
        """Increment a counter, creating it at 1 with ``ttl`` when absent."""
        async with self._locked(key):
            entry = self._live_entry(key)
            if entry is None:
                self._entries[key] = _Entry(value="1", expires_at=self._clock() + ttl)
                return 1
            try:
                current = int(entry.value)
            except ValueError as error:
                raise ValueError(f"value at {key!r} is not an integer") from error
            entry.value = str(current + 1)
            return current + 1

    async def delete(self, key: str) -> None:
        """Remove ``key`` if present."""
        async with self._locked(key):
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop every entry. Intended for deterministic tests."""
        self._entries.clear()
