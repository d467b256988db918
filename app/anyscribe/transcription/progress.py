"""
Simulated progress for running jobs.

The external tool reports no structured progress, so a ticker nudges a
counter upward by a random step each interval. The number is an estimate
with no link to real work done: it only ever grows, never reaches 100
while the process runs, and is cancelled on exit.
"""

import asyncio
import logging
import random
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int], Awaitable[None]]


class SimulatedProgress:
    """Periodic estimator capped below completion."""

    def __init__(
        self,
        on_tick: ProgressCallback,
        interval: float = 1.0,
        max_step: float = 10.0,
        cap: int = 90,
        rng: Optional[random.Random] = None,
    ) -> None:
        if not 0 <= cap < 100:
            raise ValueError("cap must be in [0, 100)")
        self._on_tick = on_tick
        self._interval = interval
        self._max_step = max_step
        self._cap = cap
        self._rng = rng or random.Random()
        self._value = 0.0
        self._task: Optional[asyncio.Task] = None

    @property
    def value(self) -> int:
        return round(self._value)

    def advance(self) -> int:
        """Move the estimate forward one step and return it."""
        self._value = min(self._value + self._rng.uniform(0, self._max_step), self._cap)
        return self.value

    def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            await self._on_tick(self.advance())
