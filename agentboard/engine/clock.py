"""Clocks and cancellable timers for the lifecycle scheduler."""

from __future__ import annotations

import asyncio
import heapq
import itertools
import time
from typing import Callable, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Clock(Protocol):
    """Source of wall time plus one-shot cancellable timers."""

    def now(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class SystemClock:
    """Wall clock with timers on the running asyncio loop."""

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(max(0.0, delay), callback)


class _VirtualTimer:
    __slots__ = ("deadline", "callback", "cancelled")

    def __init__(self, deadline: float, callback: Callable[[], None]) -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Manually advanced clock for deterministic timing tests.

    ``advance`` moves time forward and fires every timer that comes due, in
    deadline order, including timers scheduled by callbacks along the way.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self._now = start
        self._queue: list[tuple[float, int, _VirtualTimer]] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _VirtualTimer:
        timer = _VirtualTimer(self._now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.deadline, next(self._seq), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> None:
        target = self._now + seconds
        while self._queue and self._queue[0][0] <= target:
            deadline, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = deadline
            timer.callback()
        self._now = target
