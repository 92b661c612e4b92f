from __future__ import annotations

import pytest

import storefront_core.circuit_breaker.breaker as breaker_mod
from storefront_core.circuit_breaker import InMemoryKeyValueStore
from tests.storefront_core.support.fakes import FakeClock, FakeLogger, FakeRedis


@pytest.fixture
def fake_logger() -> FakeLogger:
    """Provide a fresh structured logger test double per test."""
    return FakeLogger()


@pytest.fixture
def fake_redis() -> FakeRedis:
    """Provide a fresh Redis client test double per test."""
    return FakeRedis()


@pytest.fixture
def clock(monkeypatch: pytest.MonkeyPatch) -> FakeClock:
    """Freeze breaker wall-clock time under test control."""
    fake = FakeClock()
    monkeypatch.setattr(breaker_mod, "_utcnow", fake.now)
    return fake


@pytest.fixture
def store(clock: FakeClock) -> InMemoryKeyValueStore:
    """In-memory store whose expiry follows the test clock."""
    return InMemoryKeyValueStore(clock=clock.monotonic)
