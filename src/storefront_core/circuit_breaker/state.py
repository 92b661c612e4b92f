"""Circuit breaker state primitives."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class CircuitState(StrEnum):
    """Circuit breaker state values."""

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


def parse_state(raw: str | None) -> CircuitState:
    """Map a stored state value to ``CircuitState``.

    Missing or unrecognised values read as ``CLOSED`` so an expired or corrupt
    entry never blocks traffic.
    """
    if raw is None:
        return CircuitState.CLOSED
    try:
        return CircuitState(raw)
    except ValueError:
        return CircuitState.CLOSED


def derive_observed_state(
    stored_state: CircuitState,
    opened_at: datetime | None,
    now: datetime,
    timeout: float,
) -> CircuitState:
    """Return the state a caller observes at ``now``.

    An ``OPEN`` circuit whose cooldown has elapsed is observed as
    ``HALF_OPEN``. A missing ``opened_at`` counts as elapsed.
    """
    if stored_state != CircuitState.OPEN:
        return stored_state
    if opened_at is None:
        return CircuitState.HALF_OPEN
    if (now - opened_at).total_seconds() >= timeout:
        return CircuitState.HALF_OPEN
    return CircuitState.OPEN


def retry_after(opened_at: datetime | None, now: datetime, timeout: float) -> float:
    """Seconds left in the open cooldown, never negative."""
    if opened_at is None:
        return 0.0
    elapsed = (now - opened_at).total_seconds()
    return max(timeout - elapsed, 0.0)


@dataclass(frozen=True)
class BreakerStatus:
    """Point-in-time view of one breaker for dashboards and health checks.

    Attributes:
        name: Breaker name.
        state: Observed breaker state.
        failures: Consecutive failures currently counted.
        threshold: Failures required to open the circuit.
    """

    name: str
    state: CircuitState
    failures: int
    threshold: int

    def as_dict(self) -> dict[str, str | int]:
        return {
            "name": self.name,
            "state": self.state.value,
            "failures": self.failures,
            "threshold": self.threshold,
        }
