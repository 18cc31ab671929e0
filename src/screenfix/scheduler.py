"""Cooperative timer scheduling.

Components never create timers themselves; they ask the session's
scheduler.  ``LoopScheduler`` backs it with the asyncio event loop, and the
test suite substitutes a virtual clock with the same interface.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Protocol


class Timer(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Interface for one-shot timers on a single logical task queue."""

    def now(self) -> float: ...

    def schedule_after(
        self,
        delay: float,
        callback: Callable[[], None],
    ) -> Timer: ...

    def cancel(self, timer: Timer | None) -> None: ...


class LoopScheduler:
    """Scheduler backed by ``loop.call_later`` and the loop's monotonic clock."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop if loop is not None else asyncio.get_event_loop()

    def now(self) -> float:
        return self._loop.time()

    def schedule_after(
        self,
        delay: float,
        callback: Callable[[], None],
    ) -> asyncio.TimerHandle:
        return self._loop.call_later(max(0.0, delay), callback)

    def cancel(self, timer: Timer | None) -> None:
        if timer is not None:
            timer.cancel()
