"""
Rate limiting package for the Gateway.

Fixed-window limiters that enforce a per-subject request budget, held either
in process memory or in Redis when replicas share a budget.
"""

from shared.config import GatewayConfig
from .fixed_window import FixedWindowRateLimiter, RateLimitDecision
from .redis_window import RedisFixedWindowRateLimiter


def build_rate_limiter(config: GatewayConfig):
    """Create the limiter selected by ``rate_limit_backend``."""
    if config.rate_limit_backend == "redis":
        return RedisFixedWindowRateLimiter(
            config.redis_url,
            config.rate_limit_per_minute,
            config.rate_limit_window_seconds,
        )
    return FixedWindowRateLimiter(
        config.rate_limit_per_minute,
        config.rate_limit_window_seconds,
    )


__all__ = [
    "FixedWindowRateLimiter",
    "RateLimitDecision",
    "RedisFixedWindowRateLimiter",
    "build_rate_limiter",
]
