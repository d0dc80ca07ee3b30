"""Spawn attributes for new bubbles: rise speed and horizontal position.

Both searches are bounded random trials followed by a deterministic
fallback, so spawning never stalls or raises.
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

logger = logging.getLogger(__name__)


@dataclass
class SpeedLedger:
    """Speeds handed out this level, grouped by face value."""

    _speeds: Dict[int, List[float]] = field(default_factory=dict)

    def speeds_for(self, value: int) -> List[float]:
        return list(self._speeds.get(value, ()))

    def record(self, value: int, speed: float) -> None:
        self._speeds.setdefault(value, []).append(speed)

    def clear(self) -> None:
        self._speeds.clear()

    def __len__(self) -> int:
        return sum(len(speeds) for speeds in self._speeds.values())


def assign_speed(
    value: int,
    ledger: SpeedLedger,
    rng: random.Random,
    *,
    low: float = 0.2,
    high: float = 0.6,
    epsilon: float = 0.05,
    attempts: int = 50,
) -> float:
    """Pick a speed at least `epsilon` away from every other bubble of `value`.

    Falls back to ``low + count * epsilon`` capped at `high`; the cap can
    repeat a speed once a value has been spawned many times in one level.
    """
    used = ledger.speeds_for(value)
    for _ in range(attempts):
        candidate = rng.uniform(low, high)
        if all(abs(candidate - speed) >= epsilon for speed in used):
            ledger.record(value, candidate)
            return candidate

    speed = min(low + len(used) * epsilon, high)
    logger.debug("speed search exhausted for %d, using %.2f", value, speed)
    ledger.record(value, speed)
    return speed


def find_position(
    max_width: float,
    xs: Sequence[float],
    rng: random.Random,
    *,
    min_distance: float = 85.0,
    attempts: int = 100,
) -> float:
    """Random x at least `min_distance` from every existing x, else the widest gap."""
    for _ in range(attempts):
        candidate = rng.uniform(0.0, max_width)
        if all(abs(candidate - x) >= min_distance for x in xs):
            return candidate

    logger.debug("placement exhausted %d attempts among %d bubbles", attempts, len(xs))
    return widest_gap(max_width, xs, rng)


def widest_gap(max_width: float, xs: Sequence[float], rng: random.Random) -> float:
    """Midpoint of the largest free interval in [0, max_width]."""
    if not xs:
        return rng.uniform(0.0, max_width)

    positions = sorted(xs)
    largest = positions[0]
    best = largest / 2

    for left, right in zip(positions, positions[1:]):
        gap = right - left
        if gap > largest:
            largest = gap
            best = left + gap / 2

    end_gap = max_width - positions[-1]
    if end_gap > largest:
        best = positions[-1] + end_gap / 2

    return max(0.0, min(max_width, best))


__all__ = [
    "SpeedLedger",
    "assign_speed",
    "find_position",
    "widest_gap",
]
