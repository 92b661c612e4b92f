"""Core circuit breaker implementation."""

import inspect
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TypeVar, cast

import structlog

from storefront_core.circuit_breaker.exceptions import CircuitOpenError
from storefront_core.circuit_breaker.keys import (
    DEFAULT_KEY_PREFIX,
    FAILURES_TTL_SECONDS,
    OPENED_AT_TTL_SECONDS,
    STATE_TTL_SECONDS,
    CircuitKeys,
)
from storefront_core.circuit_breaker.metrics import BreakerListener
from storefront_core.circuit_breaker.state import (
    BreakerStatus,
    CircuitState,
    derive_observed_state,
    parse_state,
    retry_after,
)
from storefront_core.circuit_breaker.storage import (
    AbstractKeyValueStore,
    InMemoryKeyValueStore,
    StoreUnavailableError,
)
from storefront_core.logging import (
    StructuredLogger,
    log_exception,
    log_info,
    log_warning,
)

T = TypeVar("T")

Operation = Callable[[], T | Awaitable[T]]


def _utcnow() -> datetime:
    return datetime.now(UTC)


async def _invoke(func: Operation[T]) -> T:
    result = func()
    if inspect.isawaitable(result):
        return await cast(Awaitable[T], result)
    return cast(T, result)


@dataclass(slots=True)
class CircuitBreakerConfig:
    """Circuit breaker configuration values.

    Attributes:
        failure_threshold: Consecutive failures required to open the circuit.
        timeout: Seconds an open circuit stays open before it is observed as
            ``HALF_OPEN``.
        expected_exceptions: Exceptions that count as failures.
        excluded_exceptions: Exceptions that pass through untouched: no
            counting and no fallback.
        key_prefix: Prefix for every store key.
        state_ttl: Expiry of the stored state, in seconds.
        opened_at_ttl: Expiry of the stored open timestamp, in seconds.
        failures_ttl: Expiry of the failure counter, applied when it is created.
    """

    failure_threshold: int = 5
    timeout: float = 60.0
    expected_exceptions: tuple[type[Exception], ...] = (Exception,)
    excluded_exceptions: tuple[type[Exception], ...] = ()
    key_prefix: str = DEFAULT_KEY_PREFIX
    state_ttl: float = STATE_TTL_SECONDS
    opened_at_ttl: float = OPENED_AT_TTL_SECONDS
    failures_ttl: float = FAILURES_TTL_SECONDS

    def __post_init__(self) -> None:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.timeout < 0:
            raise ValueError("timeout must be >= 0")
        if not self.key_prefix:
            raise ValueError("key_prefix must be non-empty")
        for field_name in ("state_ttl", "opened_at_ttl", "failures_ttl"):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"{field_name} must be > 0")


@dataclass(frozen=True, slots=True)
class _Observation:
    state: CircuitState
    opened_at: datetime | None
    now: datetime


class CircuitBreaker:
    """Failure-isolation guard around an operation, backed by a shared store.

    The instance holds no circuit state of its own. Two breakers with the same
    ``name`` and store observe and drive the same circuit, so creating one per
    call site is fine.
    """

    def __init__(
        self,
        name: str,
        *,
        config: CircuitBreakerConfig | None = None,
        store: AbstractKeyValueStore | None = None,
        listeners: Sequence[BreakerListener] | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        """Build a circuit breaker with optional custom dependencies.

        Args:
            name: Unique breaker name; isolates this breaker's store keys.
            config: Breaker behavior configuration. Defaults to
                ``CircuitBreakerConfig()``.
            store: Shared key-value store. Defaults to a private in-memory
                store.
            listeners: Optional listener hooks for breaker events.
            logger: Structured logger. Defaults to a structlog logger.
        """
        if not name:
            raise ValueError("name must be non-empty")
        self.name = name
        self.config = CircuitBreakerConfig() if config is None else config
        self._store = InMemoryKeyValueStore() if store is None else store
        self._listeners = tuple(listeners) if listeners is not None else ()
        self._logger: StructuredLogger = (
            structlog.get_logger(__name__) if logger is None else logger
        )
        self._keys = CircuitKeys(name, prefix=self.config.key_prefix)

    async def _notify(self, hook: str, *args: object) -> None:
        for listener in self._listeners:
            try:
                await getattr(listener, hook)(self.name, *args)
            except Exception:
                log_exception(
                    self._logger,
                    "circuit_breaker.listener_failed",
                    breaker=self.name,
                    hook=hook,
                )

    async def _emit_state_change(self, old: CircuitState, new: CircuitState) -> None:
        await self._notify("on_state_change", old, new)

    async def _read_opened_at(self) -> datetime | None:
        raw = await self._store.get(self._keys.opened_at)
        if raw is None:
            return None
        try:
            return datetime.fromtimestamp(float(raw), UTC)
        except ValueError:
            return None

    async def _read_failures(self) -> int:
        raw = await self._store.get(self._keys.failures)
        if raw is None:
            return 0
        try:
            return max(int(raw), 0)
        except ValueError:
            return 0

    async def _observe(self) -> _Observation:
        stored = parse_state(await self._store.get(self._keys.state))
        opened_at = (
            await self._read_opened_at() if stored == CircuitState.OPEN else None
        )
        now = _utcnow()
        observed = derive_observed_state(stored, opened_at, now, self.config.timeout)

        if stored == CircuitState.OPEN and observed == CircuitState.HALF_OPEN:
            try:
                await self._store.set(
                    self._keys.state,
                    CircuitState.HALF_OPEN.value,
                    self.config.state_ttl,
                )
            except StoreUnavailableError as exc:
                log_warning(
                    self._logger,
                    "circuit_breaker.half_open_write_failed",
                    breaker=self.name,
                    error=str(exc),
                )
            log_info(self._logger, "circuit_breaker.half_open", breaker=self.name)
            await self._emit_state_change(CircuitState.OPEN, CircuitState.HALF_OPEN)

        return _Observation(state=observed, opened_at=opened_at, now=now)

    async def _open(self, previous: CircuitState, failures: int) -> None:
        now = _utcnow()
        await self._store.set(
            self._keys.state, CircuitState.OPEN.value, self.config.state_ttl
        )
        await self._store.set(
            self._keys.opened_at, repr(now.timestamp()), self.config.opened_at_ttl
        )
        log_warning(
            self._logger,
            "circuit_breaker.opened",
            breaker=self.name,
            failures=failures,
            threshold=self.config.failure_threshold,
        )
        if previous != CircuitState.OPEN:
            await self._emit_state_change(previous, CircuitState.OPEN)

    async def call(
        self,
        operation: Operation[T],
        fallback: Operation[T] | None = None,
    ) -> T:
        """Invoke ``operation`` under circuit breaker protection.

        Args:
            operation: Zero-argument callable, sync or async, to protect.
            fallback: Optional zero-argument callable whose result substitutes
                for ``operation`` when the circuit is open or the operation
                fails.

        Returns:
            The result of ``operation``, or of ``fallback`` when it is used.

        Raises:
            CircuitOpenError: When the circuit is open and no fallback is given.
            Exception: The original exception from ``operation`` when it fails
                and no fallback is given.
        """
        observation = await self._observe()

        if observation.state == CircuitState.OPEN:
            remaining = retry_after(
                observation.opened_at, observation.now, self.config.timeout
            )
            log_info(
                self._logger,
                "circuit_breaker.rejected",
                breaker=self.name,
                retry_after=remaining,
                fallback=fallback is not None,
            )
            await self._notify("on_call_rejected")
            if fallback is not None:
                return await _invoke(fallback)
            raise CircuitOpenError(self.name, retry_after=remaining)

        start = time.monotonic()
        try:
            result = await _invoke(operation)
        except self.config.excluded_exceptions:
            raise
        except self.config.expected_exceptions as exc:
            elapsed = max(time.monotonic() - start, 0.0)
            failures = await self._store.increment(
                self._keys.failures, self.config.failures_ttl
            )
            if failures >= self.config.failure_threshold:
                await self._open(observation.state, failures)
            await self._notify("on_call_failed", exc, elapsed)
            if fallback is not None:
                return await _invoke(fallback)
            raise

        elapsed = max(time.monotonic() - start, 0.0)
        if observation.state == CircuitState.HALF_OPEN:
            await self._store.set(
                self._keys.state, CircuitState.CLOSED.value, self.config.state_ttl
            )
            await self._store.delete(self._keys.failures)
            log_info(self._logger, "circuit_breaker.closed", breaker=self.name)
            await self._emit_state_change(CircuitState.HALF_OPEN, CircuitState.CLOSED)
        else:
            await self._store.delete(self._keys.failures)
        await self._notify("on_call_succeeded", elapsed)
        return result

    async def get_status(self) -> BreakerStatus:
        """Return the observed state and failure count for this breaker."""
        observation = await self._observe()
        failures = await self._read_failures()
        return BreakerStatus(
            name=self.name,
            state=observation.state,
            failures=failures,
            threshold=self.config.failure_threshold,
        )

    async def reset(self) -> None:
        """Forget all stored state so the circuit reads ``CLOSED`` again."""
        for key in self._keys.all():
            await self._store.delete(key)
        log_info(self._logger, "circuit_breaker.reset", breaker=self.name)

    async def force_open(self) -> None:
        """Open the circuit now and restart its cooldown."""
        previous = parse_state(await self._store.get(self._keys.state))
        await self._open(previous, await self._read_failures())
