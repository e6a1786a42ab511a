import asyncio
import time

import pytest

from focusgroup.llm.rate_limit import RateLimiter, get_rate_limiter, init_rate_limiter


@pytest.mark.asyncio
async def test_starts_are_spaced_by_min_interval():
    limiter = RateLimiter(min_interval=0.05)
    starts: list[float] = []

    async def task() -> None:
        starts.append(time.monotonic())

    await asyncio.gather(*(limiter.schedule(task) for _ in range(4)))

    assert len(starts) == 4
    gaps = [later - earlier for earlier, later in zip(starts, starts[1:])]
    assert all(gap >= 0.05 - 1e-3 for gap in gaps)


@pytest.mark.asyncio
async def test_started_tasks_overlap():
    """Only starts are serialized; long tasks still run side by side."""
    limiter = RateLimiter(min_interval=0.01)
    running = 0
    peak = 0

    async def task() -> None:
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.1)
        running -= 1

    await asyncio.gather(*(limiter.schedule(task) for _ in range(3)))

    assert peak == 3


@pytest.mark.asyncio
async def test_schedule_returns_result_and_propagates_errors():
    limiter = RateLimiter(min_interval=0.0)

    async def ok() -> str:
        return "done"

    async def boom() -> None:
        raise RuntimeError("boom")

    assert await limiter.schedule(ok) == "done"
    with pytest.raises(RuntimeError, match="boom"):
        await limiter.schedule(boom)


@pytest.mark.asyncio
async def test_grants_follow_call_order():
    limiter = RateLimiter(min_interval=0.01)
    order: list[int] = []

    def make(index: int):
        async def task() -> None:
            order.append(index)

        return task

    await asyncio.gather(*(limiter.schedule(make(i)) for i in range(5)))

    assert order == [0, 1, 2, 3, 4]


def test_init_rate_limiter_replaces_singleton():
    original = get_rate_limiter()
    try:
        replaced = init_rate_limiter(0.25)
        assert get_rate_limiter() is replaced
        assert replaced.min_interval == 0.25
    finally:
        init_rate_limiter(original.min_interval)


def test_default_singleton_interval():
    assert get_rate_limiter().min_interval > 0
