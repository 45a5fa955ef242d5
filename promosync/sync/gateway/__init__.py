"""
Sync Gateway Module.

Outbound request throttling for the content source.
"""

from .rate_limiter import RateLimitConfig, RateLimiter, TokenBucket

__all__ = [
    "RateLimitConfig",
    "RateLimiter",
    "TokenBucket",
]
