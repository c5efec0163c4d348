"""Client-side rate limiting for API requests."""

import asyncio
import time
from contextlib import asynccontextmanager
from typing import Callable, List

from .logging import get_logger


class AsyncRateLimiter:
    """Sliding-window rate limiter for async operations."""

    def __init__(
        self,
        max_calls: int,
        time_window: float,
        clock: Callable[[], float] = time.monotonic
    ):
        """Initialize rate limiter.

        Args:
            max_calls: Maximum number of calls in the time window
            time_window: Time window in seconds
            clock: Monotonic time source
        """
        if max_calls < 1:
            raise ValueError("max_calls must be at least 1")

        self.max_calls = max_calls
        self.time_window = time_window
        self.calls: List[float] = []
        self.lock = asyncio.Lock()
        self._clock = clock

        self.logger = get_logger(self.__class__.__name__)

    async def acquire(self):
        """Wait until a call is allowed, then record it."""
        async with self.lock:
            while True:
                now = self._clock()
                self.calls = [call_time for call_time in self.calls if now - call_time < self.time_window]

                if len(self.calls) < self.max_calls:
                    self.calls.append(now)
                    return

                wait_time = self.time_window - (now - min(self.calls))
                self.logger.debug("Rate limit reached, waiting", wait_seconds=round(wait_time, 2))
                await asyncio.sleep(max(wait_time, 0))

    @asynccontextmanager
    async def limit(self):
        """Context manager for rate limiting."""
        await self.acquire()
        yield
