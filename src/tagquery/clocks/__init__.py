"""Clocks driving tagquery timers (async only)."""

from tagquery.clocks.base import Clock, TimerHandle
from tagquery.clocks.loop import LoopClock
from tagquery.clocks.manual import ManualClock, ManualTimer

__all__ = [
    "Clock",
    "LoopClock",
    "ManualClock",
    "ManualTimer",
    "TimerHandle",
]
