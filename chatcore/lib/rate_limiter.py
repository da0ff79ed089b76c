"""Token bucket rate limiter for external API calls."""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from typing import Any

logger = logging.getLogger(__name__)


class RateLimiter:
    """Token bucket rate limiter for API calls."""

    def __init__(
        self,
        calls_per_minute: int = 60,
        burst_size: int | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize rate limiter.

        Args:
            calls_per_minute: Maximum calls per minute
            burst_size: Maximum burst size (default: calls_per_minute)
            clock: Time source in seconds
        """
        self.calls_per_minute = calls_per_minute
        self.burst_size = burst_size or calls_per_minute
        self.tokens = float(self.burst_size)
        self._clock = clock
        self.last_refill = clock()
        self.lock = asyncio.Lock()

        self.call_history: deque = deque(maxlen=1000)

    async def acquire(self, tokens: int = 1) -> bool:
        """Acquire tokens for an API call.

        Args:
            tokens: Number of tokens to acquire

        Returns:
            True if tokens acquired, False if rate limited
        """
        async with self.lock:
            self._refill_tokens()

            if self.tokens >= tokens:
                self.tokens -= tokens
                self.call_history.append(self._clock())
                return True

            logger.warning(
                f"Rate limit reached: {self.tokens:.1f}/{self.burst_size} tokens available"
            )
            return False

    def _refill_tokens(self) -> None:
        """Refill tokens based on time elapsed."""
        now = self._clock()
        elapsed = now - self.last_refill

        # calls_per_minute / 60 tokens per second
        new_tokens = elapsed * (self.calls_per_minute / 60.0)

        if new_tokens >= 1:
            self.tokens = min(self.burst_size, self.tokens + new_tokens)
            self.last_refill = now

    def get_stats(self) -> dict[str, Any]:
        """Get rate limiter statistics."""
        now = self._clock()
        recent_calls = sum(1 for call_time in self.call_history if now - call_time < 60)

        return {
            "available_tokens": int(self.tokens),
            "burst_size": self.burst_size,
            "calls_per_minute": self.calls_per_minute,
            "recent_calls": recent_calls,
        }
