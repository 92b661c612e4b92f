from __future__ import annotations

import asyncio
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime

from storefront_core.circuit_breaker import BreakerStatus, CircuitBreaker, CircuitState

STATUS_OK = "ok"
STATUS_DEGRADED = "degraded"


@dataclass(frozen=True)
class HealthSnapshot:
    """Immutable snapshot of breaker states for dashboards and health checks."""

    status: str
    healthy: bool
    checked_at: datetime
    breakers: tuple[BreakerStatus, ...]

    def degraded_breakers(self) -> tuple[str, ...]:
        return tuple(
            status.name
            for status in self.breakers
            if status.state != CircuitState.CLOSED
        )

    def as_dict(self) -> dict[str, object]:
        return {
            "status": self.status,
            "healthy": self.healthy,
            "checked_at": self.checked_at.isoformat(),
            "breakers": [status.as_dict() for status in self.breakers],
        }


async def collect_breaker_health(
    breakers: Sequence[CircuitBreaker],
) -> HealthSnapshot:
    """Read every breaker's status and summarise them.

    Reading status may move an expired ``OPEN`` circuit to ``HALF_OPEN``.
    """
    statuses = tuple(
        await asyncio.gather(*(breaker.get_status() for breaker in breakers))
    )
    healthy = all(status.state == CircuitState.CLOSED for status in statuses)
    return HealthSnapshot(
        status=STATUS_OK if healthy else STATUS_DEGRADED,
        healthy=healthy,
        checked_at=datetime.now(UTC),
        breakers=statuses,
    )
