"""Shared error types for storefront_core."""


class TransientError(RuntimeError):
    """Generic retry-safe transient dependency failure."""
