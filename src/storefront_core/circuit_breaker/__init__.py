"""Framework-agnostic async circuit breaker backed by a shared key-value store.

Key behavior notes:
  - Breakers hold no state in memory. State, failure count and the open
    timestamp live in an ``AbstractKeyValueStore`` under
    ``circuit:{name}:state``, ``circuit:{name}:failures`` and
    ``circuit:{name}:opened_at``, each with its own expiry.
  - ``OPEN`` becomes ``HALF_OPEN`` lazily: the first read after the cooldown
    observes (and records) the transition. There is no background timer.
  - Checking the failure threshold is not atomic with the increment. Concurrent
    callers may race; the circuit opens on whichever failure first observes a
    count at or above the threshold.
"""

from storefront_core.circuit_breaker.breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
)
from storefront_core.circuit_breaker.decorators import circuit_protected
from storefront_core.circuit_breaker.exceptions import (
    CircuitBreakerError,
    CircuitOpenError,
)
from storefront_core.circuit_breaker.keys import CircuitKeys
from storefront_core.circuit_breaker.metrics import BreakerListener
from storefront_core.circuit_breaker.state import (
    BreakerStatus,
    CircuitState,
    derive_observed_state,
)
from storefront_core.circuit_breaker.storage import (
    AbstractKeyValueStore,
    InMemoryKeyValueStore,
    StoreUnavailableError,
)

__all__ = [
    "AbstractKeyValueStore",
    "BreakerListener",
    "BreakerStatus",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerError",
    "CircuitKeys",
    "CircuitOpenError",
    "CircuitState",
    "InMemoryKeyValueStore",
    "StoreUnavailableError",
    "circuit_protected",
    "derive_observed_state",
]
