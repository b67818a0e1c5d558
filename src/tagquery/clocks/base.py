"""Base clock protocols driving timers and retry backoff."""

from collections.abc import Callable
from typing import Protocol, runtime_checkable


@runtime_checkable
class TimerHandle(Protocol):
    """A pending timer that can be cancelled."""

    def cancel(self) -> None:
        """Cancel the timer. Cancelling twice is a no-op."""
        ...


@runtime_checkable
class Clock(Protocol):
    """Time source and timer factory. All values are in milliseconds."""

    def now(self) -> float:
        """Current monotonic time."""
        ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """Run ``callback`` once after ``delay``."""
        ...

    async def sleep(self, delay: float) -> None:
        """Suspend the current task for ``delay``."""
        ...
