"""Bounded concurrency for multi-step persona pipelines."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConcurrencyQueue:
    """Runs at most ``concurrency`` tasks at a time, starting the rest in FIFO order.

    Independent of the rate limiter: the limiter spaces out individual calls,
    the queue caps how many persona pipelines are in flight.
    """

    def __init__(self, concurrency: int = 3) -> None:
        if concurrency < 1:
            msg = f"concurrency must be at least 1, got {concurrency}"
            raise ValueError(msg)
        self.concurrency = concurrency
        self._semaphore = asyncio.Semaphore(concurrency)
        self._running = 0
        self._waiting = 0

    @property
    def running(self) -> int:
        return self._running

    @property
    def waiting(self) -> int:
        return self._waiting

    async def add(self, task: Callable[[], Awaitable[T]]) -> T:
        """Wait for a free slot, run ``task`` and release the slot however it ends."""
        self._waiting += 1
        try:
            await self._semaphore.acquire()
        finally:
            self._waiting -= 1

        self._running += 1
        try:
            return await task()
        finally:
            self._running -= 1
            self._semaphore.release()


_queue: ConcurrencyQueue | None = None
_queue_lock = threading.Lock()


def get_request_queue() -> ConcurrencyQueue:
    """Get or create the process-wide persona queue."""
    global _queue
    if _queue is None:
        with _queue_lock:
            if _queue is None:
                _queue = ConcurrencyQueue(concurrency=3)
    return _queue


def init_request_queue(concurrency: int) -> ConcurrencyQueue:
    """Replace the process-wide persona queue."""
    global _queue
    with _queue_lock:
        _queue = ConcurrencyQueue(concurrency=concurrency)
    logger.info("Initialized persona queue: %s concurrent", concurrency)
    return _queue
