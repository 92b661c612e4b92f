"""Store key layout for breaker state.

Keys must stay stable per breaker name so separate processes sharing one
store agree on the same circuit.
"""

from dataclasses import dataclass

DEFAULT_KEY_PREFIX = "circuit"
STATE_TTL_SECONDS = 24 * 60 * 60
OPENED_AT_TTL_SECONDS = 24 * 60 * 60
FAILURES_TTL_SECONDS = 5 * 60


@dataclass(frozen=True, slots=True)
class CircuitKeys:
    """Key names for one breaker."""

    name: str
    prefix: str = DEFAULT_KEY_PREFIX

    @property
    def state(self) -> str:
        return f"{self.prefix}:{self.name}:state"

    @property
    def failures(self) -> str:
        return f"{self.prefix}:{self.name}:failures"

    @property
    def opened_at(self) -> str:
        return f"{self.prefix}:{self.name}:opened_at"

    def all(self) -> tuple[str, str, str]:
        return (self.state, self.failures, self.opened_at)
