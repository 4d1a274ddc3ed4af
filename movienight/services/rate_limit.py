"""Sliding-window limiter for outbound TMDb requests."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Awaitable, Callable


logger = logging.getLogger(__name__)


class SlidingWindowRateLimiter:
    """Admit at most ``max_requests`` acquisitions in any trailing ``interval`` seconds.

    Waiters never hold a reserved slot: after sleeping they prune the window and
    check again, so many overlapping waiters on one event loop stay within bounds.
    The check-and-append step has no suspension point, which makes it atomic for
    asyncio callers.
    """

    def __init__(
        self,
        max_requests: int = 20,
        interval: float = 1.0,
        *,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests < 1 or interval <= 0:
            raise ValueError("max_requests and interval must be positive")
        self.max_requests = max_requests
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.interval:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        while True:
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) < self.max_requests:
                self._timestamps.append(now)
                return
            wait = self.interval - (now - self._timestamps[0])
            logger.debug("Rate limit window full, waiting %.3fs", wait)
            await self._sleep(max(wait, 0.0))
