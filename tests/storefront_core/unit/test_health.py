from __future__ import annotations

import pytest

from storefront_core.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    InMemoryKeyValueStore,
)
from storefront_core.health import STATUS_DEGRADED, STATUS_OK, collect_breaker_health

pytestmark = pytest.mark.asyncio


async def test_all_closed_breakers_report_ok() -> None:
    store = InMemoryKeyValueStore()
    breakers = [
        CircuitBreaker("payment-gateway", store=store),
        CircuitBreaker("shipping-quotes", store=store),
    ]

    snapshot = await collect_breaker_health(breakers)

    assert snapshot.status == STATUS_OK
    assert snapshot.healthy is True
    assert snapshot.degraded_breakers() == ()
    assert [status.name for status in snapshot.breakers] == [
        "payment-gateway",
        "shipping-quotes",
    ]


async def test_open_breaker_degrades_snapshot() -> None:
    store = InMemoryKeyValueStore()
    payment = CircuitBreaker(
        "payment-gateway",
        config=CircuitBreakerConfig(failure_threshold=1),
        store=store,
    )
    shipping = CircuitBreaker("shipping-quotes", store=store)
    await payment.force_open()

    snapshot = await collect_breaker_health([payment, shipping])

    assert snapshot.status == STATUS_DEGRADED
    assert snapshot.healthy is False
    assert snapshot.degraded_breakers() == ("payment-gateway",)
    payload = snapshot.as_dict()
    assert payload["status"] == "degraded"
    assert payload["breakers"] == [
        {"name": "payment-gateway", "state": "open", "failures": 0, "threshold": 1},
        {"name": "shipping-quotes", "state": "closed", "failures": 0, "threshold": 5},
    ]
    assert isinstance(payload["checked_at"], str)


async def test_empty_breaker_list_is_healthy() -> None:
    snapshot = await collect_breaker_health([])

    assert snapshot.healthy is True
    assert snapshot.breakers == ()
