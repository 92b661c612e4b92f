from __future__ import annotations

from typing import Literal

from pydantic import ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from storefront_core.circuit_breaker.breaker import CircuitBreakerConfig
from storefront_core.circuit_breaker.keys import (
    DEFAULT_KEY_PREFIX,
    FAILURES_TTL_SECONDS,
    OPENED_AT_TTL_SECONDS,
    STATE_TTL_SECONDS,
)
from storefront_core.logging import get_log_level_value

StoreBackend = Literal["memory", "redis"]


def prefixed_settings_config(prefix: str) -> SettingsConfigDict:
    """Build standard Pydantic settings config for prefixed environments."""
    return SettingsConfigDict(env_prefix=prefix, case_sensitive=False)


class BreakerSettings(BaseSettings):
    """Environment-driven defaults for storefront circuit breakers."""

    model_config = prefixed_settings_config("CIRCUIT_BREAKER_")

    failure_threshold: int = 5
    timeout_seconds: float = 60.0
    key_prefix: str = DEFAULT_KEY_PREFIX
    state_ttl_seconds: int = STATE_TTL_SECONDS
    failures_ttl_seconds: int = FAILURES_TTL_SECONDS
    opened_at_ttl_seconds: int = OPENED_AT_TTL_SECONDS
    store_backend: StoreBackend = "memory"
    redis_url: str | None = None
    log_level: str = "INFO"

    @field_validator("store_backend", mode="before")
    @classmethod
    def _normalize_store_backend(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("key_prefix", "redis_url", mode="before")
    @classmethod
    def _validate_optional_string(cls, value: object, info: ValidationInfo) -> object:
        if not isinstance(value, str):
            return value
        normalized = value.strip()
        if not normalized:
            raise ValueError(f"{info.field_name} must be non-empty")
        return normalized

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        get_log_level_value(value)
        return value.strip().upper()

    @model_validator(mode="after")
    def _validate_breaker_settings(self) -> BreakerSettings:
        if self.failure_threshold < 1:
            raise ValueError("failure_threshold must be >= 1")
        if self.timeout_seconds < 0:
            raise ValueError("timeout_seconds must be >= 0")
        for name in (
            "state_ttl_seconds",
            "failures_ttl_seconds",
            "opened_at_ttl_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be > 0")
        if self.store_backend == "redis" and not self.redis_url:
            raise ValueError("redis_url is required when store_backend is redis")
        return self

    def breaker_config(self) -> CircuitBreakerConfig:
        """Build the breaker configuration these settings describe."""
        return CircuitBreakerConfig(
            failure_threshold=self.failure_threshold,
            timeout=self.timeout_seconds,
            key_prefix=self.key_prefix,
            state_ttl=self.state_ttl_seconds,
            opened_at_ttl=self.opened_at_ttl_seconds,
            failures_ttl=self.failures_ttl_seconds,
        )
