# runtime/scheduler.py
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from myth_oracle.utils.logger import log_error, log_event


class PollScheduler:
    """
    Fixed-interval driver for the reconciliation cycle.

    Ticks fire every `interval` seconds regardless of how long a cycle takes.
    A tick that finds the previous cycle still running is skipped, so cycles
    never overlap.
    """

    def __init__(self, cycle: Callable[[], Awaitable[object]], interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.cycle = cycle
        self.interval = interval
        self.skipped = 0
        self.completed = 0
        self._current: Optional[asyncio.Task] = None
        self._stop = asyncio.Event()

    @property
    def in_progress(self) -> bool:
        return self._current is not None and not self._current.done()

    def tick(self) -> bool:
        """Start a cycle unless one is running. Returns True if a cycle was started."""
        if self.in_progress:
            self.skipped += 1
            logging.warning(f"[Scheduler] Previous cycle still running, skipping tick (skipped={self.skipped})")
            return False
        self._current = asyncio.ensure_future(self._run_once())
        return True

    async def _run_once(self):
        try:
            await self.cycle()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log_error(f"Reconciliation cycle crashed: {e}")
        else:
            self.completed += 1

    async def run_forever(self):
        log_event(f"Polling every {self.interval:g}s")
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        while not self._stop.is_set():
            self.tick()
            next_tick += self.interval
            try:
                await asyncio.wait_for(self._stop.wait(), max(0.0, next_tick - loop.time()))
            except asyncio.TimeoutError:
                pass
        await self.drain()

    def stop(self):
        self._stop.set()

    async def drain(self):
        """Wait for the in-flight cycle, if any."""
        if self._current is not None and not self._current.done():
            await asyncio.gather(self._current, return_exceptions=True)
