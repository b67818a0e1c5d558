"""Virtual clock whose time only moves when told to."""

from __future__ import annotations

import asyncio
import heapq
import itertools
from collections.abc import Callable
from dataclasses import dataclass, field

# Loop iterations given to ready tasks after each timer fires
_FLUSH_ROUNDS = 20


@dataclass(order=True)
class ManualTimer:
    """A timer scheduled on a ManualClock."""

    deadline: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class ManualClock:
    """Clock for tests and simulations: timers fire only during ``advance()``.

    Usage:
        clock = ManualClock()
        client = QueryClient(clock=clock)
        client.query(fetch_users, [], interval=5)
        await clock.advance(50)  # fetch_users ran 11 times
    """

    def __init__(self, start: float = 0) -> None:
        self._now = float(start)
        self._timers: list[ManualTimer] = []
        self._sequence = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(
            deadline=self._now + max(delay, 0),
            sequence=next(self._sequence),
            callback=callback,
        )
        heapq.heappush(self._timers, timer)
        return timer

    async def sleep(self, delay: float) -> None:
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def wake() -> None:
            if not future.done():
                future.set_result(None)

        self.call_later(delay, wake)
        await future

    @property
    def pending(self) -> int:
        """Number of timers that are armed and not cancelled."""
        return sum(1 for timer in self._timers if not timer.cancelled)

    async def advance(self, delay: float) -> None:
        """Move time forward, firing every timer due on the way in order.

        Tasks woken by a timer get to run before the next timer fires, so
        timers they arm within the window fire too.
        """
        target = self._now + delay
        await self.flush()

        while self._timers and self._timers[0].deadline <= target:
            timer = heapq.heappop(self._timers)
            if timer.cancelled:
                continue
            self._now = timer.deadline
            timer.callback()
            await self.flush()

        self._now = target

    async def flush(self) -> None:
        """Let ready tasks run without moving time."""
        for _ in range(_FLUSH_ROUNDS):
            await asyncio.sleep(0)
