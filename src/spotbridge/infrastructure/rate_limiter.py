"""
Rolling-window Rate Limiter for Web API requests.

Hey future me – this is the gate EVERY Web API request passes before it's sent!
We use a sliding window log instead of a token bucket: the Web API counts requests
in a rolling window, and a bucket with burst capacity happily sends N+burst requests
in one window and eats 429s for it.

ALGORITHM: Sliding Window Log
- Remember the issue timestamp of every admitted request
- Drop timestamps older than `window_seconds`
- Admit if fewer than `capacity` timestamps remain
- Otherwise sleep until the oldest timestamp leaves the window, then re-check

INVARIANT: at no point do more than `capacity` admissions fall into any trailing
window, no matter how many tasks call acquire() at once. Admission is NOT FIFO:
whoever re-checks first after a wakeup wins.

The 429 backoff is NOT handled here (see RequestExecutor) – the limiter only knows
about our own request rate, not about what the server thinks.

USAGE:
    limiter = RateLimiter(RateLimiterConfig(capacity=2, window_seconds=1.0))
    await limiter.acquire(token)
    response = await client.get(url)
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass, field

from spotbridge.config.settings import WebApiSettings
from spotbridge.core.cancellation import CancellationToken

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me – defaults are what the extension always used: 2 requests per second.
    """

    capacity: int = 2  # Requests per window
    window_seconds: float = 1.0

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("capacity must be at least 1")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


@dataclass
class RateLimiter:
    """Sliding window rate limiter.

    Attributes:
        config: Rate limiter configuration
        clock: Monotonic time source (injectable for tests)
        _issued: Timestamps of admissions still inside the window
        _lock: Async lock guarding _issued
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    clock: Callable[[], float] = time.monotonic
    name: str = "webapi"

    _issued: deque[float] = field(default_factory=deque, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    @classmethod
    def from_settings(cls, settings: WebApiSettings) -> "RateLimiter":
        """Create limiter from Web API settings."""
        return cls(
            config=RateLimiterConfig(
                capacity=settings.requests_per_window,
                window_seconds=settings.rate_window_seconds,
            )
        )

    def _evict(self, now: float) -> None:
        horizon = now - self.config.window_seconds
        while self._issued and self._issued[0] <= horizon:
            self._issued.popleft()

    async def acquire(self, token: CancellationToken) -> None:
        """Wait until one more request may be issued, then record it.

        Raises:
            Cancelled: If the token fires while waiting (nothing is recorded)
        """
        while True:
            token.raise_if_cancelled()
            async with self._lock:
                now = self.clock()
                self._evict(now)
                if len(self._issued) < self.config.capacity:
                    self._issued.append(now)
                    return
                wait_time = self._issued[0] + self.config.window_seconds - now

            logger.debug(
                "RateLimiter[%s]: window full, waiting %.3fs", self.name, wait_time
            )
            # Sleep outside the lock so other waiters can re-check too
            await token.sleep(max(wait_time, 0.0))

    @property
    def available(self) -> int:
        """Admissions possible right now (for debugging)."""
        self._evict(self.clock())
        return self.config.capacity - len(self._issued)


__all__ = ["RateLimiter", "RateLimiterConfig"]
