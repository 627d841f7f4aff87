"""
In-process fixed-window rate limiter for the gateway.

Counters are kept per subject. Each entry carries its own lock, so a
check-and-increment for one subject never waits on another subject's traffic.

A fixed window admits up to ``limit`` requests in ``[start, start + window)``.
Bursts of up to twice the limit are possible around a window boundary; that
is inherent to the algorithm and accepted here.
"""

import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from shared.logging import get_logger


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of one admission check."""

    allowed: bool
    limit: int
    remaining: int
    reset_in_seconds: float


@dataclass
class _WindowEntry:
    window_start: float
    count: int = 0
    last_seen: float = 0.0
    evicted: bool = False
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)


class FixedWindowRateLimiter:
    """Per-key fixed-window counter held in process memory.

    Memory grows with the number of distinct keys until ``evict_idle`` drops
    entries whose window has long passed. The gateway runs it once per window
    from a background task started at application startup.
    """

    def __init__(self, limit: int, window_seconds: float = 60.0, clock: Callable[[], float] = time.monotonic):
        if limit <= 0:
            raise ValueError("limit must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        self._entries: Dict[str, _WindowEntry] = {}
        self.logger = get_logger("gateway.rate_limiter")

    def try_acquire(self, key: str) -> bool:
        """Admit one request for ``key`` if its current window has budget left."""
        return self.acquire(key).allowed

    async def check(self, key: str) -> RateLimitDecision:
        return self.acquire(key)

    def acquire(self, key: str) -> RateLimitDecision:
        while True:
            now = self._clock()
            entry = self._entries.get(key)
            if entry is None:
                # setdefault is atomic: racing creators end up sharing one entry
                entry = self._entries.setdefault(key, _WindowEntry(window_start=now, last_seen=now))

            with entry.lock:
                if entry.evicted:
                    continue
                return self._admit(entry, now)

    def _admit(self, entry: _WindowEntry, now: float) -> RateLimitDecision:
        elapsed = now - entry.window_start
        if elapsed >= self.window_seconds:
            windows_passed = int(elapsed // self.window_seconds)
            entry.window_start += windows_passed * self.window_seconds
            entry.count = 0

        entry.last_seen = now
        reset_in = entry.window_start + self.window_seconds - now

        if entry.count < self.limit:
            entry.count += 1
            return RateLimitDecision(
                allowed=True,
                limit=self.limit,
                remaining=self.limit - entry.count,
                reset_in_seconds=reset_in,
            )

        return RateLimitDecision(
            allowed=False,
            limit=self.limit,
            remaining=0,
            reset_in_seconds=reset_in,
        )

    def evict_idle(self, idle_seconds: Optional[float] = None) -> int:
        """Drop entries not seen for ``idle_seconds`` (default: one window)."""
        cutoff = self.window_seconds if idle_seconds is None else idle_seconds
        now = self._clock()
        removed = 0

        for key, entry in list(self._entries.items()):
            with entry.lock:
                if now - entry.last_seen < cutoff:
                    continue
                entry.evicted = True
                if self._entries.get(key) is entry:
                    del self._entries[key]
                    removed += 1

        if removed:
            self.logger.debug("Evicted idle rate limit entries", removed=removed)
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    async def close(self) -> None:
        return None
