import asyncio

import pytest

from myth_oracle.runtime.scheduler import PollScheduler


def test_interval_must_be_positive():
    async def cycle():
        pass
    with pytest.raises(ValueError):
        PollScheduler(cycle, 0)


@pytest.mark.asyncio
async def test_overlapping_tick_is_skipped():
    release = asyncio.Event()
    started = []

    async def cycle():
        started.append(1)
        await release.wait()

    scheduler = PollScheduler(cycle, interval=10)
    assert scheduler.tick()
    await asyncio.sleep(0)
    assert scheduler.in_progress

    assert not scheduler.tick()
    assert scheduler.skipped == 1

    release.set()
    await scheduler.drain()
    assert scheduler.completed == 1
    assert scheduler.tick()
    await scheduler.drain()
    assert len(started) == 2


@pytest.mark.asyncio
async def test_crashing_cycle_does_not_stop_the_loop():
    calls = []

    async def cycle():
        calls.append(1)
        raise RuntimeError("bad cycle")

    scheduler = PollScheduler(cycle, interval=0.01)
    runner = asyncio.ensure_future(scheduler.run_forever())
    await asyncio.sleep(0.05)
    scheduler.stop()
    await asyncio.wait_for(runner, 1)

    assert len(calls) >= 2
    assert scheduler.completed == 0


@pytest.mark.asyncio
async def test_slow_cycle_never_overlaps():
    running = 0
    peak = 0

    async def cycle():
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.03)
        running -= 1

    scheduler = PollScheduler(cycle, interval=0.01)
    runner = asyncio.ensure_future(scheduler.run_forever())
    await asyncio.sleep(0.1)
    scheduler.stop()
    await asyncio.wait_for(runner, 1)

    assert peak == 1
    assert scheduler.skipped > 0
