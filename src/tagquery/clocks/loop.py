"""Clock backed by the running asyncio event loop."""

import asyncio
from collections.abc import Callable


class LoopClock:
    """Uses the running loop's monotonic time and ``call_later``.

    Must be used from inside a running event loop.
    """

    def now(self) -> float:
        return asyncio.get_running_loop().time() * 1000

    def call_later(
        self, delay: float, callback: Callable[[], None]
    ) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay / 1000, callback)

    async def sleep(self, delay: float) -> None:
        await asyncio.sleep(delay / 1000)
