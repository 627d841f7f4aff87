"""
Redis-backed fixed-window rate limiter.

Used when several gateway replicas must share one budget per subject. The
check-and-increment runs as a single Lua script, so concurrent callers on any
replica can never both take the last slot of a window.
"""

import time
from typing import Callable, Optional

import redis.asyncio as redis

from shared.logging import get_logger
from .fixed_window import RateLimitDecision

# KEYS[1] = counter key, ARGV[1] = limit, ARGV[2] = window in milliseconds
ACQUIRE_SCRIPT = """
local current = tonumber(redis.call('GET', KEYS[1]) or '0')
if current >= tonumber(ARGV[1]) then
  return {0, current, redis.call('PTTL', KEYS[1])}
end
current = redis.call('INCR', KEYS[1])
if current == 1 then
  redis.call('PEXPIRE', KEYS[1], ARGV[2])
end
return {1, current, redis.call('PTTL', KEYS[1])}
"""


class RedisFixedWindowRateLimiter:
    """Distributed fixed-window limiter; windows are aligned to the epoch."""

    def __init__(
        self,
        redis_url: str,
        limit: int,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.time,
    ):
        if limit <= 0:
            raise ValueError("limit must be positive")
        self.redis_url = redis_url
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self.logger = get_logger("gateway.rate_limiter.redis")
        self._redis: Optional[redis.Redis] = None

    async def _get_redis(self) -> redis.Redis:
        """Get Redis connection."""
        if self._redis is None:
            self._redis = redis.from_url(self.redis_url)
        return self._redis

    def _make_key(self, client_id: str, window_index: int) -> str:
        """Generate rate limit key."""
        return f"rate_limit:{client_id}:{window_index}"

    async def check(self, key: str) -> RateLimitDecision:
        now = self._clock()
        window_index = int(now // self.window_seconds)
        window_end = (window_index + 1) * self.window_seconds

        try:
            redis_client = await self._get_redis()
            allowed, count, ttl_ms = await redis_client.eval(
                ACQUIRE_SCRIPT,
                1,
                self._make_key(key, window_index),
                self.limit,
                int(self.window_seconds * 1000),
            )
        except Exception as e:
            # Fail open: an unavailable store must not take the relay down.
            self.logger.error("Rate limit check error", error=str(e))
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=self.limit,
                reset_in_seconds=window_end - now,
            )

        count = int(count)
        reset_in = ttl_ms / 1000.0 if ttl_ms and int(ttl_ms) > 0 else window_end - now

        if not int(allowed):
            self.logger.warning(
                "Rate limit exceeded",
                client_id=key,
                current_count=count,
                limit=self.limit,
            )
            return RateLimitDecision(False, self.limit, 0, reset_in)

        return RateLimitDecision(True, self.limit, max(0, self.limit - count), reset_in)

    async def try_acquire(self, key: str) -> bool:
        return (await self.check(key)).allowed

    async def check_health(self) -> str:
        try:
            redis_client = await self._get_redis()
            await redis_client.ping()
            return "ok"
        except Exception as e:
            self.logger.error("Redis health check failed", error=str(e))
            return "error"

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
