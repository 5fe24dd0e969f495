"""Exceptions raised by the model cache."""

from __future__ import annotations


class CacheError(Exception):
    """Base class for model cache errors."""


class ContractViolation(CacheError, AssertionError):
    """A cacheable operation broke its contract (e.g. returned no awaitable)."""


class KeyDerivationError(CacheError):
    """Call arguments could not be rendered into a stable cache key."""


class ConfigError(CacheError, ValueError):
    """Cache configuration is malformed."""
