from __future__ import annotations

import heapq
import itertools
import time
from collections.abc import Callable
from typing import Protocol


class Clock(Protocol):
    """Monotonic clock abstraction.

    Core logic depends on this interface rather than calling real time directly.
    """

    def now(self) -> float:
        """Return monotonic seconds."""


class RealClock:
    """Production clock backed by time.monotonic()."""

    def now(self) -> float:
        return time.monotonic()


# Tolerance for float drift when intervals are accumulated tick by tick.
_DUE_EPS_S = 1e-9


class TimerHandle:
    """Cancellable reference to a scheduled callback."""

    __slots__ = ("_callback", "_interval_s", "_cancelled", "_finished")

    def __init__(self, callback: Callable[[], None], interval_s: float | None) -> None:
        self._callback = callback
        self._interval_s = interval_s
        self._cancelled = False
        self._finished = False

    @property
    def active(self) -> bool:
        return not (self._cancelled or self._finished)

    @property
    def repeating(self) -> bool:
        return self._interval_s is not None

    def cancel(self) -> None:
        self._cancelled = True


class TimerQueue:
    """Deterministic one-shot and repeating timers pumped from the frame loop.

    Nothing fires on its own: `run_due()` dispatches every callback whose
    deadline has passed according to the injected Clock, in deadline order
    (ties keep scheduling order). Callbacks may schedule or cancel timers;
    a handle cancelled mid-dispatch never fires again.
    """

    def __init__(self, *, clock: Clock) -> None:
        self._clock = clock
        self._heap: list[tuple[float, int, TimerHandle]] = []
        self._seq = itertools.count()

    @property
    def clock(self) -> Clock:
        return self._clock

    def now(self) -> float:
        return self._clock.now()

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        if delay_s < 0.0:
            raise ValueError("delay_s must be >= 0")
        handle = TimerHandle(callback, None)
        self._push(self._clock.now() + float(delay_s), handle)
        return handle

    def call_every(self, interval_s: float, callback: Callable[[], None]) -> TimerHandle:
        if interval_s <= 0.0:
            raise ValueError("interval_s must be > 0")
        handle = TimerHandle(callback, float(interval_s))
        self._push(self._clock.now() + float(interval_s), handle)
        return handle

    def run_due(self) -> int:
        now = self._clock.now()
        fired = 0
        while self._heap and self._heap[0][0] <= now + _DUE_EPS_S:
            deadline, _, handle = heapq.heappop(self._heap)
            if not handle.active:
                continue
            if handle._interval_s is None:
                handle._finished = True
            else:
                self._push(deadline + handle._interval_s, handle)
            handle._callback()
            fired += 1
        return fired

    def pending(self) -> int:
        return sum(1 for _, _, handle in self._heap if handle.active)

    def cancel_all(self) -> None:
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()

    def _push(self, deadline: float, handle: TimerHandle) -> None:
        heapq.heappush(self._heap, (deadline, next(self._seq), handle))
