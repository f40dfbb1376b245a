"""Unit tests for bounded fan-out used by the synthesis and rendering stages."""

import asyncio

import pytest

from video_agent.agent import fan_out


@pytest.mark.unit
@pytest.mark.asyncio
async def test_results_follow_input_order_under_reversed_latencies():
    completed: list[int] = []

    async def worker(item: int) -> str:
        # Later items finish first
        await asyncio.sleep(0.01 * (5 - item))
        completed.append(item)
        return f"clip-{item}"

    results = await fan_out(list(range(5)), worker, limit=5)

    assert completed == [4, 3, 2, 1, 0]
    assert results == [f"clip-{i}" for i in range(5)]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_concurrency_is_bounded():
    in_flight = 0
    peak = 0

    async def worker(item: int) -> int:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return item

    assert await fan_out(list(range(10)), worker, limit=3) == list(range(10))
    assert peak == 3


@pytest.mark.unit
@pytest.mark.asyncio
async def test_first_failure_is_raised_and_queued_work_skipped():
    started: list[int] = []

    async def worker(item: int) -> int:
        started.append(item)
        await asyncio.sleep(0.01)
        if item == 0:
            raise RuntimeError("scene 0 failed")
        return item

    with pytest.raises(RuntimeError, match="scene 0 failed"):
        await fan_out(list(range(6)), worker, limit=2)

    # Items 0 and 1 were in flight; nothing queued behind them started
    assert started == [0, 1]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_invalid_limit():
    async def worker(item):
        return item

    with pytest.raises(ValueError):
        await fan_out([1], worker, limit=0)
