"""Shared utilities."""

from promosync.utils.locks import KeyedLock
from promosync.utils.retry import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    RetryConfig,
    RetryContext,
    RetryExecutor,
)

__all__ = [
    "KeyedLock",
    "CircuitBreaker",
    "CircuitBreakerConfig",
    "CircuitBreakerRegistry",
    "CircuitState",
    "RetryConfig",
    "RetryContext",
    "RetryExecutor",
]
