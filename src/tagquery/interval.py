"""IntervalController - owns at most one pending timer."""

import math
from collections.abc import Callable

from tagquery.clocks.base import Clock, TimerHandle


class IntervalController:
    """Arms one timer at a time on a clock.

    ``set`` always replaces the pending timer, so rescheduling after the
    subscriber set changes is just another ``set``.
    """

    __slots__ = ("_clock", "_timer")

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._timer: TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def set(self, callback: Callable[[], None], delay: float) -> None:
        """Cancel any pending timer, then fire ``callback`` after ``delay``.

        An infinite delay leaves nothing armed.
        """
        self.clear()

        if delay == math.inf:
            return

        def fire() -> None:
            self._timer = None
            callback()

        self._timer = self._clock.call_later(max(delay, 0), fire)

    def clear(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
