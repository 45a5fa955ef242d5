"""
Retry and Circuit Breaker Utilities for promosync.

Provides retry with exponential backoff and jitter, exception classification,
and per-entity-type circuit breakers owned by whoever constructs the registry.
"""

import logging
import random
import threading
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Deque, Dict, List, Optional, Type, TypeVar

from promosync.config.settings import CircuitBreakerSettings, RetrySettings
from promosync.exceptions import CircuitBreakerOpenError, is_retryable_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(Enum):
    """Circuit breaker states."""
    CLOSED = "closed"      # Normal operation
    OPEN = "open"          # Failing, reject requests
    HALF_OPEN = "half_open"  # Testing if service recovered


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_attempts: int = 3
    initial_delay: float = 1.0
    max_delay: float = 30.0
    backoff_multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.1
    entity_max_attempts: Dict[str, int] = field(default_factory=dict)
    retryable_exceptions: List[Type[BaseException]] = field(default_factory=list)
    non_retryable_exceptions: List[Type[BaseException]] = field(default_factory=list)

    @classmethod
    def from_settings(cls, retry_settings: RetrySettings) -> "RetryConfig":
        return cls(
            max_attempts=retry_settings.max_attempts,
            initial_delay=retry_settings.initial_delay,
            max_delay=retry_settings.max_delay,
            backoff_multiplier=retry_settings.backoff_multiplier,
            jitter=retry_settings.jitter,
            entity_max_attempts=dict(retry_settings.entity_max_attempts),
        )

    def attempts_for(self, entity_type: str) -> int:
        """Attempt ceiling for an entity type, never below one."""
        return max(1, self.entity_max_attempts.get(entity_type, self.max_attempts))


@dataclass
class CircuitBreakerConfig:
    """Configuration for circuit breaker behavior."""
    failure_threshold: int = 5
    recovery_timeout: float = 60.0
    success_threshold: float = 0.6
    evaluation_window: int = 3

    @classmethod
    def from_settings(cls, cb_settings: CircuitBreakerSettings) -> "CircuitBreakerConfig":
        return cls(
            failure_threshold=cb_settings.failure_threshold,
            recovery_timeout=cb_settings.recovery_timeout,
            success_threshold=cb_settings.success_threshold,
            evaluation_window=cb_settings.evaluation_window,
        )


@dataclass
class RetryContext:
    """State of one retry call."""
    entity_type: str
    operation_name: str
    max_attempts: int
    current_attempt: int = 0
    last_exception: Optional[BaseException] = None
    start_time: float = field(default_factory=time.monotonic)

    @property
    def attempts_remaining(self) -> int:
        return self.max_attempts - self.current_attempt

    @property
    def elapsed(self) -> float:
        return time.monotonic() - self.start_time


class RetryExecutor:
    """
    Retry executor with exponential backoff and exception classification.

    Only failures classified as retryable are attempted again. On exhaustion
    the last exception is re-raised as is.
    """

    def __init__(self, config: Optional[RetryConfig] = None, sleep: Callable[[float], None] = time.sleep):
        self.config = config or RetryConfig()
        self._sleep = sleep

    def calculate_delay(self, retry_number: int) -> float:
        """Delay before the ``retry_number``-th retry (1-based)."""
        delay = self.config.initial_delay * (self.config.backoff_multiplier ** (retry_number - 1))
        delay = min(delay, self.config.max_delay)

        if self.config.jitter and self.config.jitter_range > 0:
            jitter_amount = delay * self.config.jitter_range
            delay = random.uniform(delay - jitter_amount, delay + jitter_amount)
            delay = min(max(0.0, delay), self.config.max_delay)

        return delay

    def delay_for(self, exception: BaseException, retry_number: int) -> float:
        """Backoff delay, raised to the server's ``retry_after`` hint and capped at ``max_delay``."""
        delay = self.calculate_delay(retry_number)
        retry_after = getattr(exception, "retry_after", None)
        if retry_after:
            delay = min(max(delay, float(retry_after)), self.config.max_delay)
        return delay

    def should_retry(self, exception: BaseException, context: RetryContext) -> bool:
        """Determine if the exception should trigger another attempt."""
        if context.current_attempt >= context.max_attempts:
            return False

        for exc_type in self.config.non_retryable_exceptions:
            if isinstance(exception, exc_type):
                return False

        for exc_type in self.config.retryable_exceptions:
            if isinstance(exception, exc_type):
                return True

        return is_retryable_error(exception)

    def execute_with_retry(
        self,
        entity_type: str,
        attempt_fn: Callable[[int], T],
        operation_name: str = "sync"
    ) -> T:
        """
        Run ``attempt_fn`` until it succeeds or retries are used up.

        Args:
            entity_type: Entity type the work belongs to; selects the attempt ceiling
            attempt_fn: Callable receiving the 1-based attempt number
            operation_name: Label used in log messages

        Returns:
            Whatever ``attempt_fn`` returns on its first successful attempt
        """
        context = RetryContext(
            entity_type=entity_type,
            operation_name=operation_name,
            max_attempts=self.config.attempts_for(entity_type),
        )

        while True:
            context.current_attempt += 1
            try:
                return attempt_fn(context.current_attempt)
            except Exception as e:
                context.last_exception = e

                if not self.should_retry(e, context):
                    if context.current_attempt >= context.max_attempts and is_retryable_error(e):
                        logger.error(
                            f"All {context.max_attempts} attempts of {operation_name} for "
                            f"{entity_type} failed after {context.elapsed:.2f}s: {e}"
                        )
                    else:
                        logger.debug(
                            f"Not retrying {operation_name} for {entity_type} after "
                            f"attempt {context.current_attempt}: {e}"
                        )
                    raise

                delay = self.delay_for(e, context.current_attempt)
                logger.warning(
                    f"Attempt {context.current_attempt}/{context.max_attempts} of {operation_name} "
                    f"for {entity_type} failed: {e}. Retrying in {delay:.2f} seconds..."
                )
                self._sleep(delay)


class CircuitBreaker:
    """
    Circuit breaker for a single entity type.

    Prevents hammering a failing content source by refusing calls for a
    cooldown period after repeated failures, then letting a few trial calls
    through before closing again.
    """

    def __init__(
        self,
        name: str,
        config: Optional[CircuitBreakerConfig] = None,
        retry_executor: Optional[RetryExecutor] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.name = name
        self.config = config or CircuitBreakerConfig()
        self.retry_executor = retry_executor or RetryExecutor()
        self._clock = clock
        self.state = CircuitState.CLOSED
        self.failure_count = 0
        self.last_transition = clock()
        self.outcomes: Deque[bool] = deque(maxlen=max(1, self.config.evaluation_window))
        self.lock = threading.Lock()

    def _transition(self, state: CircuitState) -> None:
        self.state = state
        self.last_transition = self._clock()

    @property
    def success_ratio(self) -> float:
        with self.lock:
            return self._success_ratio()

    def _success_ratio(self) -> float:
        if not self.outcomes:
            return 1.0
        return sum(1 for ok in self.outcomes if ok) / len(self.outcomes)

    def _before_call(self) -> None:
        with self.lock:
            if self.state != CircuitState.OPEN:
                return

            elapsed = self._clock() - self.last_transition
            if elapsed < self.config.recovery_timeout:
                raise CircuitBreakerOpenError(self.name, self.config.recovery_timeout - elapsed)

            self._transition(CircuitState.HALF_OPEN)
            self.outcomes.clear()
            logger.info(f"Circuit breaker {self.name} transitioning to HALF_OPEN after {elapsed:.1f}s")

    def _on_success(self) -> None:
        with self.lock:
            self.outcomes.append(True)
            if self.state == CircuitState.HALF_OPEN:
                window_full = len(self.outcomes) >= self.config.evaluation_window
                if window_full and self._success_ratio() >= self.config.success_threshold:
                    self._transition(CircuitState.CLOSED)
                    self.failure_count = 0
                    logger.info(
                        f"Circuit breaker {self.name} transitioning to CLOSED "
                        f"(success ratio {self._success_ratio():.2f})"
                    )
                else:
                    logger.debug(
                        f"Circuit breaker {self.name} half-open success "
                        f"{len(self.outcomes)}/{self.config.evaluation_window}"
                    )
            else:
                self.failure_count = 0

    def _on_failure(self, error: BaseException) -> None:
        with self.lock:
            self.outcomes.append(False)
            self.failure_count += 1

            if self.state == CircuitState.HALF_OPEN:
                self._transition(CircuitState.OPEN)
                logger.warning(f"Circuit breaker {self.name} failed during HALF_OPEN, returning to OPEN: {error}")
            elif self.state == CircuitState.CLOSED and self.failure_count >= self.config.failure_threshold:
                self._transition(CircuitState.OPEN)
                logger.warning(
                    f"Circuit breaker {self.name} opening due to {self.failure_count} "
                    f"consecutive failures (threshold: {self.config.failure_threshold})"
                )
            else:
                logger.debug(f"Circuit breaker {self.name} failure {self.failure_count}/{self.config.failure_threshold}")

    def execute(self, fn: Callable[[int], T], operation_name: str = "sync") -> T:
        """
        Run ``fn`` through the retry executor unless the breaker is open.

        Raises:
            CircuitBreakerOpenError: the breaker is open and the cooldown has
                not elapsed; ``fn`` is not invoked
        """
        self._before_call()

        try:
            result = self.retry_executor.execute_with_retry(self.name, fn, operation_name)
        except Exception as e:
            self._on_failure(e)
            raise

        self._on_success()
        return result

    def reset(self) -> None:
        with self.lock:
            self._transition(CircuitState.CLOSED)
            self.failure_count = 0
            self.outcomes.clear()
        logger.info(f"Circuit breaker {self.name} reset")

    def get_state(self) -> Dict[str, Any]:
        """Get current circuit breaker state."""
        with self.lock:
            return {
                "name": self.name,
                "state": self.state.value,
                "failure_count": self.failure_count,
                "success_ratio": round(self._success_ratio(), 4),
                "recent_outcomes": len(self.outcomes),
                "seconds_since_transition": round(self._clock() - self.last_transition, 3),
            }


class CircuitBreakerRegistry:
    """Independent circuit breakers keyed by entity type."""

    def __init__(
        self,
        config: Optional[CircuitBreakerConfig] = None,
        retry_executor: Optional[RetryExecutor] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.config = config or CircuitBreakerConfig()
        self.retry_executor = retry_executor or RetryExecutor()
        self._clock = clock
        self._breakers: Dict[str, CircuitBreaker] = {}
        self._lock = threading.Lock()

    def get(self, entity_type: str) -> CircuitBreaker:
        """Get or create the breaker for an entity type."""
        with self._lock:
            breaker = self._breakers.get(entity_type)
            if breaker is None:
                breaker = CircuitBreaker(entity_type, self.config, self.retry_executor, self._clock)
                self._breakers[entity_type] = breaker
            return breaker

    def execute(self, entity_type: str, fn: Callable[[int], T], operation_name: str = "sync") -> T:
        return self.get(entity_type).execute(fn, operation_name)

    def states(self) -> Dict[str, Dict[str, Any]]:
        with self._lock:
            breakers = dict(self._breakers)
        return {name: cb.get_state() for name, cb in sorted(breakers.items())}

    def reset(self, entity_type: Optional[str] = None) -> None:
        """Reset one breaker, or all of them."""
        with self._lock:
            targets = list(self._breakers.values()) if entity_type is None else [
                cb for name, cb in self._breakers.items() if name == entity_type
            ]
        for breaker in targets:
            breaker.reset()


__all__ = [
    "CircuitState",
    "RetryConfig",
    "CircuitBreakerConfig",
    "RetryContext",
    "RetryExecutor",
    "CircuitBreaker",
    "CircuitBreakerRegistry",
]
