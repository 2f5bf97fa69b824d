from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleep = Callable[[float], Awaitable[None]]


class RateLimiter:
    """
    Minimum spacing between outbound calls.

    `acquire()` reserves the next free slot before suspending, so callers that
    arrive together are spaced out in arrival order.
    """

    def __init__(
        self,
        min_interval: float = 2.0,
        *,
        clock: Clock = time.monotonic,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last_call: float | None = None

    @property
    def last_call(self) -> float | None:
        return self._last_call

    async def acquire(self) -> None:
        now = self._clock()
        slot = now
        if self._last_call is not None:
            slot = max(now, self._last_call + self._min_interval)
        self._last_call = slot

        wait = slot - now
        if wait > 0:
            logger.info("Rate limiting: waiting %.2fs before next request", wait)
            await self._sleep(wait)

    async def backoff(self, delay: float) -> None:
        """Sit out a rate-limit penalty, then count as a fresh call."""
        await self._sleep(delay)
        self._last_call = self._clock()
