"""
Single-threaded timer scheduling.

The monitoring loop is cooperative: pending timers are fired by the loop
itself at frame boundaries via `run_due(now)`, so callbacks never run
concurrently with a tick.
"""
import heapq
import itertools
import time
from typing import Callable, List, Optional, Tuple


class TimerHandle:
    """Handle of a scheduled callback; `cancel()` is idempotent."""

    def __init__(self, when: float, callback: Callable[[float], None]):
        self.when = when
        self._callback = callback
        self._cancelled = False
        self._fired = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._fired

    @property
    def pending(self) -> bool:
        return not (self._cancelled or self._fired)

    def _run(self, now: float) -> None:
        self._fired = True
        self._callback(now)


class TickScheduler:
    """Orders pending timers by deadline and fires them when the loop asks."""

    def __init__(self):
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._counter = itertools.count()

    def call_later(self, delay: float, callback: Callable[[float], None], now: float) -> TimerHandle:
        """Schedule `callback(fire_time)` for `now + delay` seconds."""
        handle = TimerHandle(now + delay, callback)
        heapq.heappush(self._heap, (handle.when, next(self._counter), handle))
        return handle

    def run_due(self, now: float) -> int:
        """Fire every pending timer whose deadline is <= now; returns how many fired."""
        fired = 0
        while self._heap and self._heap[0][0] <= now:
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            handle._run(now)
            fired += 1
        return fired

    def next_deadline(self) -> Optional[float]:
        for when, _, handle in sorted(self._heap):
            if handle.pending:
                return when
        return None

    def pending_count(self) -> int:
        return sum(1 for _, _, handle in self._heap if handle.pending)


class ManualClock:
    """Clock advanced by hand; used to drive the loop deterministically."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def advance(self, seconds: float) -> float:
        self.now += seconds
        return self.now

    def __call__(self) -> float:
        return self.now


def monotonic_clock() -> float:
    return time.monotonic()
