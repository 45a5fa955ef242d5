"""
Outbound Rate Limiter.

Throttles requests to the content source with a token bucket. Callers block
in ``acquire`` until a permit is available.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from promosync.config.settings import SyncSettings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Rate limiting configuration."""
    requests_per_second: float = 3.0
    burst_size: int = 3

    @classmethod
    def from_settings(cls, sync_settings: SyncSettings) -> "RateLimitConfig":
        return cls(
            requests_per_second=sync_settings.requests_per_second,
            burst_size=sync_settings.rate_limit_burst,
        )


class TokenBucket:
    """Token bucket rate limiter implementation."""

    def __init__(self, capacity: int, refill_rate: float, clock: Callable[[], float] = time.monotonic):
        """
        Initialize token bucket.

        Args:
            capacity: Maximum tokens in bucket
            refill_rate: Tokens added per second
            clock: Monotonic time source
        """
        self.capacity = max(1, capacity)
        self.refill_rate = refill_rate
        self._clock = clock
        self.tokens = float(self.capacity)
        self.last_refill = clock()
        self._lock = threading.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + elapsed * self.refill_rate)
        self.last_refill = now

    def consume(self, tokens: int = 1) -> Tuple[bool, float]:
        """
        Try to consume tokens from bucket.

        Returns:
            Tuple of (success, seconds to wait before enough tokens exist)
        """
        with self._lock:
            self._refill()

            if self.tokens >= tokens:
                self.tokens -= tokens
                return True, 0.0
            return False, (tokens - self.tokens) / self.refill_rate

    def get_tokens(self) -> int:
        """Get current token count."""
        with self._lock:
            self._refill()
            return int(self.tokens)


class RateLimiter:
    """Blocking rate limiter shared by every outbound content-source request."""

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.config = config or RateLimitConfig()
        self._bucket = TokenBucket(self.config.burst_size, self.config.requests_per_second, clock)
        self._sleep = sleep
        self.total_wait_seconds = 0.0

    def acquire(self) -> float:
        """
        Block until a request may be sent.

        Returns:
            Seconds spent waiting
        """
        waited = 0.0
        while True:
            allowed, wait_time = self._bucket.consume()
            if allowed:
                if waited:
                    logger.debug(f"Rate limiter delayed request by {waited:.2f}s")
                    self.total_wait_seconds += waited
                return waited
            self._sleep(wait_time)
            waited += wait_time

    def try_acquire(self) -> bool:
        """Take a permit only if one is available right now."""
        allowed, _ = self._bucket.consume()
        return allowed

    @property
    def available_permits(self) -> int:
        return self._bucket.get_tokens()
