from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with ``call_later``; an asyncio event loop satisfies this."""

    def call_later(self, delay: float, callback: Callable[..., object], *args: object) -> Cancellable: ...


class ManualHandle:
    def __init__(self, when: float, callback: Callable[..., object], args: tuple[object, ...]):
        self.when = when
        self._callback = callback
        self._args = args
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    def cancelled(self) -> bool:
        return self._cancelled

    def _run(self) -> None:
        self._callback(*self._args)


class ManualScheduler:
    """
    Deterministic virtual-time scheduler.

    Callbacks run only when ``advance`` moves the clock past their due time,
    in (due time, scheduling order) order.
    """

    def __init__(self) -> None:
        self._now = 0.0
        self._queue: list[tuple[float, int, ManualHandle]] = []
        self._counter = itertools.count()

    def time(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[..., object], *args: object) -> ManualHandle:
        if delay < 0:
            raise ValueError("delay must be non-negative")
        handle = ManualHandle(self._now + delay, callback, args)
        heapq.heappush(self._queue, (handle.when, next(self._counter), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, handle in self._queue if not handle.cancelled())

    def advance(self, seconds: float) -> int:
        """Move virtual time forward, running due callbacks. Returns how many ran."""
        if seconds < 0:
            raise ValueError("cannot move time backwards")
        deadline = self._now + seconds
        ran = 0
        while self._queue and self._queue[0][0] <= deadline:
            when, _, handle = heapq.heappop(self._queue)
            self._now = when
            if handle.cancelled():
                continue
            handle._run()
            ran += 1
        self._now = deadline
        return ran

    def run_until_idle(self) -> int:
        ran = 0
        while self._queue:
            when = self._queue[0][0]
            ran += self.advance(max(0.0, when - self._now))
        return ran


class ScheduledSequence:
    """A group of scheduled steps that can be cancelled together."""

    def __init__(self, scheduler: Scheduler):
        self._scheduler = scheduler
        self._handles: list[Cancellable] = []
        self._cancelled = False

    def schedule(self, delay: float, callback: Callable[..., object], *args: object) -> None:
        if self._cancelled:
            return
        self._handles.append(self._scheduler.call_later(delay, callback, *args))

    def cancel(self) -> None:
        self._cancelled = True
        for handle in self._handles:
            handle.cancel()
        self._handles.clear()

    @property
    def cancelled(self) -> bool:
        return self._cancelled
