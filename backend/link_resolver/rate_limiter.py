"""
Per-provider outbound rate limiting.

Each provider gets a RateLimiter enforcing a minimum spacing between
request start times. The bookkeeping in reserve() has no await, so on
a single event loop it is atomic with respect to other tasks; only the
resulting delay is awaited.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class RateLimiter:
    """
    Minimum-interval gate for one provider.

    Usage:
        limiter = RateLimiter("imgur", min_interval=1.0)
        await limiter.acquire()
        response = await client.get(...)
    """

    def __init__(
        self,
        name: str,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.min_interval = max(0.0, min_interval)
        self._clock = clock
        self._sleep = sleep
        self.last_request_at: Optional[float] = None

    def reserve(self) -> float:
        """
        Claim the next request slot and return how long to wait for it.

        Must stay free of suspension points.
        """
        now = self._clock()
        if self.last_request_at is None:
            slot = now
        else:
            slot = max(now, self.last_request_at + self.min_interval)
        self.last_request_at = slot
        return slot - now

    async def acquire(self) -> None:
        delay = self.reserve()
        if delay > 0:
            logger.debug(f"[RateLimiter] {self.name}: waiting {delay:.3f}s")
            await self._sleep(delay)


class RateLimiterRegistry:
    """Holds one RateLimiter per provider name."""

    def __init__(
        self,
        intervals: Dict[str, float],
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._limiters = {
            name: RateLimiter(name, interval, clock=clock, sleep=sleep)
            for name, interval in intervals.items()
        }

    def get(self, name: str) -> Optional[RateLimiter]:
        return self._limiters.get(name)
