"""
Sync error taxonomy.

Every failure raised inside the sync engine belongs to one of four families:
retryable (transient source trouble), non-retryable (bad input or missing
references), breaker-open (call not attempted) and configuration errors
(the run cannot start).
"""

from typing import Iterable, List, Optional

import httpx


class SyncError(Exception):
    """Base class for sync engine errors."""
    pass


class RetryableSyncError(SyncError):
    """Transient failure talking to the content source."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after


class NonRetryableSyncError(SyncError):
    """Failure that will not go away by trying again."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidRecordError(NonRetryableSyncError):
    """A source record is malformed or misses a required field."""
    pass


class UnresolvedReferenceError(NonRetryableSyncError):
    """A record references another entity that is not present locally."""

    def __init__(self, entity_type: str, reference: str, message: Optional[str] = None):
        super().__init__(message or f"Unresolved {entity_type} reference: {reference}")
        self.entity_type = entity_type
        self.reference = reference


class CircuitBreakerOpenError(SyncError):
    """Raised instead of calling a worker whose circuit breaker is open."""

    def __init__(self, entity_type: str, retry_after: float = 0.0):
        super().__init__(
            f"Circuit breaker for {entity_type} is OPEN "
            f"(will allow a trial call in {retry_after:.1f}s)"
        )
        self.entity_type = entity_type
        self.retry_after = retry_after


class SyncConfigurationError(SyncError):
    """The engine is misconfigured and no entity worker may run."""
    pass


class DependencyCycleError(SyncConfigurationError):
    """The declared entity dependency graph contains a cycle."""

    def __init__(self, remaining: Iterable[str]):
        self.remaining: List[str] = sorted(remaining)
        super().__init__(
            f"Circular dependency detected between: {', '.join(self.remaining)}"
        )


RETRYABLE_STATUS_CODES = frozenset({429})


def is_retryable_status(status_code: int) -> bool:
    """429 and every 5xx are worth another attempt."""
    return status_code in RETRYABLE_STATUS_CODES or status_code >= 500


def is_retryable_error(exception: BaseException) -> bool:
    """
    Classify an exception as retryable or not.

    Unknown exception types are treated as non-retryable so programming
    errors surface on the first attempt.
    """
    if isinstance(exception, RetryableSyncError):
        return True
    if isinstance(exception, SyncError):
        return False
    if isinstance(exception, httpx.HTTPStatusError):
        return is_retryable_status(exception.response.status_code)
    if isinstance(exception, (httpx.TimeoutException, httpx.TransportError)):
        return True
    if isinstance(exception, (TimeoutError, ConnectionError)):
        return True
    return False


__all__ = [
    "SyncError",
    "RetryableSyncError",
    "NonRetryableSyncError",
    "InvalidRecordError",
    "UnresolvedReferenceError",
    "CircuitBreakerOpenError",
    "SyncConfigurationError",
    "DependencyCycleError",
    "is_retryable_status",
    "is_retryable_error",
]
