"""Timer primitive used by the scan scheduler."""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Protocol


class Clock(Protocol):
    def now_ms(self) -> float: ...

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> Any: ...

    def cancel(self, handle: Any) -> None: ...


class LoopClock:
    """Clock backed by the running asyncio event loop.

    Callbacks run on the loop thread, one at a time, which is what keeps the
    scheduler's decisions from interleaving.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now_ms(self) -> float:
        return self.loop.time() * 1000

    def schedule(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay_ms, 0) / 1000, callback)

    def cancel(self, handle: asyncio.TimerHandle) -> None:
        handle.cancel()
