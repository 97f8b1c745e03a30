"""Per-provider minimum-interval gate shared by every adapter call."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Mapping

logger = logging.getLogger(__name__)

Clock = Callable[[], float]
Sleeper = Callable[[float], Awaitable[None]]


class RateLimiter:
    """Enforce ``min_interval_ms[key]`` between successive ``acquire(key)`` calls.

    Waiters on the same key are served in call order (``asyncio.Lock`` is FIFO);
    different keys never block each other. Keys without a configured interval
    pass straight through.
    """

    def __init__(
        self,
        min_interval_ms: Mapping[str, int],
        *,
        clock: Clock = time.monotonic,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        self._intervals = {key: max(0, ms) / 1000.0 for key, ms in min_interval_ms.items()}
        self._clock = clock
        self._sleep = sleep
        self._last_call: dict[str, float] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    def interval(self, key: str) -> float:
        return self._intervals.get(key, 0.0)

    async def acquire(self, key: str) -> None:
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            interval = self.interval(key)
            last = self._last_call.get(key)
            if last is not None and interval > 0:
                elapsed = self._clock() - last
                if elapsed < interval:
                    wait = interval - elapsed
                    logger.debug("[%s] rate limit wait: %.3fs", key, wait)
                    await self._sleep(wait)
            self._last_call[key] = self._clock()


__all__ = ["RateLimiter"]
