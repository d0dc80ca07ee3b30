"""Tunable constants for the bubble engine.

Units follow the play area: positions in pixels, speeds in pixels per
simulation tick, times in milliseconds.
"""

from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class GameConfig:
    """Every number the engine depends on, grouped by concern."""

    # Play area
    width: float = 800.0
    height: float = 600.0
    bubble_size: float = 70.0
    top_threshold: float = -70.0

    # Rules
    target_sum: int = 10
    points_per_pair: int = 10
    initial_quota: int = 6
    quota_step: int = 2

    # Level speed (tracked per level, see fast_level)
    base_speed: float = 0.6
    fast_speed: float = 0.8
    fast_level: int = 10

    # Speed allocator
    speed_min: float = 0.2
    speed_max: float = 0.6
    speed_epsilon: float = 0.05
    speed_attempts: int = 50

    # Placement solver
    min_distance: float = 85.0
    placement_attempts: int = 100

    # Timing
    tick_ms: int = 16
    spawn_stagger_ms: int = 800
    pop_delay_ms: int = 800
    game_over_stagger_ms: int = 150
    game_over_report_delay_ms: int = 400

    def __post_init__(self) -> None:
        if self.width <= self.bubble_size or self.height <= 0:
            raise ValueError("play area must be larger than a bubble")
        if self.tick_ms <= 0:
            raise ValueError("tick_ms must be positive")
        if self.speed_min > self.speed_max:
            raise ValueError("speed_min must not exceed speed_max")

    @property
    def max_x(self) -> float:
        """Largest x a bubble's left edge may take."""
        return self.width - self.bubble_size

    def quota_for(self, level: int) -> int:
        return self.initial_quota + (level - 1) * self.quota_step

    def speed_for(self, level: int) -> float:
        return self.fast_speed if level >= self.fast_level else self.base_speed

    def with_overrides(self, **changes) -> "GameConfig":
        return replace(self, **changes)


__all__ = ["GameConfig"]
