"""Global rate limiter for generation calls."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RateLimiter:
    """Spaces out the *starts* of scheduled tasks by ``min_interval`` seconds.

    Only the permission to start is serialized; the tasks themselves run
    concurrently once started. Waiters are granted permission in call order.
    """

    def __init__(self, min_interval: float) -> None:
        self.min_interval = min_interval
        self._last_grant = float("-inf")
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        """Wait until the next start is allowed, then record the grant."""
        # A waiter cancelled mid-sleep releases the lock and leaves _last_grant untouched.
        async with self._lock:
            while (wait := self.min_interval - (time.monotonic() - self._last_grant)) > 0:
                await asyncio.sleep(wait)
            self._last_grant = time.monotonic()

    async def schedule(self, task: Callable[[], Awaitable[T]]) -> T:
        """Run ``task`` once permission is granted and return its result."""
        await self.acquire()
        return await task()


# Global singleton instance
_limiter: RateLimiter | None = None
_limiter_lock = threading.Lock()


def get_rate_limiter() -> RateLimiter:
    """Get or create the global rate limiter singleton."""
    global _limiter
    if _limiter is None:
        with _limiter_lock:
            if _limiter is None:
                # 1500ms keeps us at ~40 requests per minute.
                _limiter = RateLimiter(min_interval=1.5)
    return _limiter


def init_rate_limiter(min_interval: float) -> RateLimiter:
    """Replace the global rate limiter with one using ``min_interval``."""
    global _limiter
    with _limiter_lock:
        _limiter = RateLimiter(min_interval=min_interval)
    logger.info("Initialized global rate limiter: %.2fs between calls", min_interval)
    return _limiter
