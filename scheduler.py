"""Virtual clock driving every delayed action in the game.

Time only moves when `advance` is called: the pygame loop feeds it real
frame durations, tests feed it whatever they need.
"""

from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Tuple

Action = Callable[[], None]


@dataclass
class Timer:
    """Handle returned by the scheduler; `cancel` stops future firings."""

    action: Action
    fire_at: int
    period: Optional[int] = None
    cancelled: bool = field(default=False, compare=False)

    def cancel(self) -> None:
        self.cancelled = True


class Scheduler:
    """Sorted queue of (fire time, action) pairs in milliseconds."""

    def __init__(self, start: int = 0) -> None:
        self.now = start
        self._queue: List[Tuple[int, int, Timer]] = []
        self._seq = itertools.count()

    def call_later(self, delay_ms: int, action: Action) -> Timer:
        timer = Timer(action=action, fire_at=self.now + max(0, int(delay_ms)))
        self._push(timer)
        return timer

    def call_every(self, period_ms: int, action: Action) -> Timer:
        if period_ms <= 0:
            raise ValueError("period must be positive")
        timer = Timer(action=action, fire_at=self.now + period_ms, period=period_ms)
        self._push(timer)
        return timer

    def advance(self, elapsed_ms: int) -> int:
        """Move time forward, firing every due action in order. Returns the count fired."""
        target = self.now + max(0, int(elapsed_ms))
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            fire_at, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = fire_at
            if timer.period is not None:
                timer.fire_at = fire_at + timer.period
                self._push(timer)
            timer.action()
            fired += 1
        self.now = target
        return fired

    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def clear(self) -> None:
        for _, _, timer in self._queue:
            timer.cancel()
        self._queue.clear()

    def _push(self, timer: Timer) -> None:
        heapq.heappush(self._queue, (timer.fire_at, next(self._seq), timer))


__all__ = ["Scheduler", "Timer"]
