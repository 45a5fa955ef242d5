"""
Unit tests for per-entity circuit breakers.
"""

import pytest

from promosync.exceptions import CircuitBreakerOpenError, InvalidRecordError, RetryableSyncError
from promosync.utils.retry import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    CircuitState,
    RetryConfig,
    RetryExecutor,
)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _fail(attempt):
    raise InvalidRecordError("bad page")


def _ok(attempt):
    return "ok"


class TestCircuitBreaker:
    """Tests for CircuitBreaker state transitions."""

    def setup_method(self):
        self.clock = FakeClock()
        self.retry = RetryExecutor(RetryConfig(max_attempts=1, jitter=False), sleep=lambda s: None)
        self.breaker = CircuitBreaker(
            "wrestlers",
            CircuitBreakerConfig(
                failure_threshold=3,
                recovery_timeout=30.0,
                success_threshold=0.6,
                evaluation_window=3,
            ),
            self.retry,
            clock=self.clock,
        )

    def _trip(self):
        for _ in range(3):
            with pytest.raises(InvalidRecordError):
                self.breaker.execute(_fail)

    def test_starts_closed(self):
        assert self.breaker.state == CircuitState.CLOSED
        assert self.breaker.execute(_ok) == "ok"

    def test_opens_after_consecutive_failures(self):
        self._trip()
        assert self.breaker.state == CircuitState.OPEN
        assert self.breaker.failure_count == 3

    def test_success_resets_consecutive_failures(self):
        for _ in range(2):
            with pytest.raises(InvalidRecordError):
                self.breaker.execute(_fail)
        self.breaker.execute(_ok)
        with pytest.raises(InvalidRecordError):
            self.breaker.execute(_fail)

        assert self.breaker.state == CircuitState.CLOSED
        assert self.breaker.failure_count == 1

    def test_open_breaker_fails_fast_without_calling(self):
        self._trip()
        calls = []

        with pytest.raises(CircuitBreakerOpenError) as exc_info:
            self.breaker.execute(lambda n: calls.append(n))

        assert calls == []
        assert exc_info.value.entity_type == "wrestlers"
        assert exc_info.value.retry_after == pytest.approx(30.0)

    def test_half_open_after_cooldown(self):
        self._trip()
        self.clock.advance(30.0)

        assert self.breaker.execute(_ok) == "ok"
        assert self.breaker.state == CircuitState.HALF_OPEN

    def test_half_open_closes_once_window_meets_ratio(self):
        self._trip()
        self.clock.advance(31.0)

        for _ in range(3):
            self.breaker.execute(_ok)

        assert self.breaker.state == CircuitState.CLOSED
        assert self.breaker.failure_count == 0

    def test_failure_while_half_open_reopens(self):
        self._trip()
        self.clock.advance(31.0)
        self.breaker.execute(_ok)

        with pytest.raises(InvalidRecordError):
            self.breaker.execute(_fail)

        assert self.breaker.state == CircuitState.OPEN
        with pytest.raises(CircuitBreakerOpenError):
            self.breaker.execute(_ok)

    def test_retries_happen_inside_one_breaker_call(self):
        retry = RetryExecutor(RetryConfig(max_attempts=3, jitter=False, initial_delay=0.0), sleep=lambda s: None)
        breaker = CircuitBreaker("shows", CircuitBreakerConfig(failure_threshold=2), retry, clock=self.clock)
        attempts = []

        def flaky(attempt):
            attempts.append(attempt)
            raise RetryableSyncError("timeout")

        with pytest.raises(RetryableSyncError):
            breaker.execute(flaky)

        assert attempts == [1, 2, 3]
        assert breaker.failure_count == 1
        assert breaker.state == CircuitState.CLOSED

    def test_reset_closes(self):
        self._trip()
        self.breaker.reset()

        assert self.breaker.state == CircuitState.CLOSED
        assert self.breaker.execute(_ok) == "ok"

    def test_get_state(self):
        self._trip()
        state = self.breaker.get_state()

        assert state["name"] == "wrestlers"
        assert state["state"] == "open"
        assert state["failure_count"] == 3


class TestCircuitBreakerRegistry:
    """Tests for independent breakers per entity type."""

    def setup_method(self):
        self.clock = FakeClock()
        self.registry = CircuitBreakerRegistry(
            CircuitBreakerConfig(failure_threshold=1, recovery_timeout=10.0),
            RetryExecutor(RetryConfig(max_attempts=1), sleep=lambda s: None),
            clock=self.clock,
        )

    def test_breakers_are_independent(self):
        with pytest.raises(InvalidRecordError):
            self.registry.execute("wrestlers", _fail)

        assert self.registry.get("wrestlers").state == CircuitState.OPEN
        assert self.registry.execute("shows", _ok) == "ok"
        assert self.registry.get("shows").state == CircuitState.CLOSED

    def test_same_breaker_per_entity_type(self):
        assert self.registry.get("titles") is self.registry.get("titles")
        assert self.registry.get("titles") is not self.registry.get("teams")

    def test_states_and_reset(self):
        with pytest.raises(InvalidRecordError):
            self.registry.execute("wrestlers", _fail)
        self.registry.execute("shows", _ok)

        states = self.registry.states()
        assert list(states) == ["shows", "wrestlers"]
        assert states["wrestlers"]["state"] == "open"

        self.registry.reset("wrestlers")
        assert self.registry.get("wrestlers").state == CircuitState.CLOSED

    def test_reset_all(self):
        for name in ("wrestlers", "titles"):
            with pytest.raises(InvalidRecordError):
                self.registry.execute(name, _fail)

        self.registry.reset()

        assert all(state["state"] == "closed" for state in self.registry.states().values())
