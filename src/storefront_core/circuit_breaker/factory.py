"""Build breakers and stores from ``BreakerSettings``."""

from collections.abc import Sequence

from storefront_core.circuit_breaker.breaker import CircuitBreaker
from storefront_core.circuit_breaker.integrations.redis.store import (
    RedisKeyValueStore,
)
from storefront_core.circuit_breaker.metrics import BreakerListener
from storefront_core.circuit_breaker.storage import (
    AbstractKeyValueStore,
    InMemoryKeyValueStore,
)
from storefront_core.logging import StructuredLogger, configure_structlog
from storefront_core.settings import BreakerSettings


def build_store(settings: BreakerSettings) -> AbstractKeyValueStore:
    """Return the store backend selected by ``settings.store_backend``."""
    if settings.store_backend == "redis":
        if settings.redis_url is None:
            raise ValueError("redis_url is required for the redis store backend")
        return RedisKeyValueStore.from_url(settings.redis_url)
    return InMemoryKeyValueStore()


def configure_logging(
    settings: BreakerSettings, *, service: str | None = None
) -> StructuredLogger:
    """Configure process logging at ``settings.log_level`` and return a logger."""
    return configure_structlog(log_level=settings.log_level, service=service)


def build_breaker(
    name: str,
    *,
    settings: BreakerSettings,
    store: AbstractKeyValueStore | None = None,
    listeners: Sequence[BreakerListener] | None = None,
    logger: StructuredLogger | None = None,
) -> CircuitBreaker:
    """Create a breaker configured from ``settings``.

    Pass the same ``store`` to every breaker that must share state; when it is
    omitted a new store is built from ``settings``.
    """
    return CircuitBreaker(
        name,
        config=settings.breaker_config(),
        store=build_store(settings) if store is None else store,
        listeners=listeners,
        logger=logger,
    )
