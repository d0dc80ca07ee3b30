"""Core game logic for the rising number bubbles.

The module is UI-agnostic and focuses solely on state updates and rules:
    * batching pair types into bubble spawns for each level,
    * rising bubbles on a fixed simulation tick,
    * selecting two bubbles and popping them when they sum to the target,
    * level progression and the game-over sequence.

Front-ends subscribe through `GameListener` and drive time through
`BubbleGame.update`.
"""

from __future__ import annotations

import itertools
import logging
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple

from config import GameConfig
from pairs import PairKey, PairType, pair_key, shuffled, unique_pair_types
from scheduler import Scheduler, Timer
from spawning import SpeedLedger, assign_speed, find_position

logger = logging.getLogger(__name__)


@dataclass
class Vec2:
    """Simple 2D vector utility."""

    x: float
    y: float

    def __sub__(self, other: "Vec2") -> "Vec2":
        return Vec2(self.x - other.x, self.y - other.y)

    def length(self) -> float:
        return math.hypot(self.x, self.y)


class BubbleState(Enum):
    RISING = "rising"
    SELECTED = "selected"
    POPPING = "popping"
    REMOVED = "removed"


class GameState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    LEVEL_COMPLETE = "level_complete"
    GAME_OVER = "game_over"


class SelectionOutcome(Enum):
    IGNORED = "ignored"
    SELECTED = "selected"
    DESELECTED = "deselected"
    MATCHED = "matched"
    RESELECTED = "reselected"


@dataclass
class Bubble:
    """A numbered bubble; `x` never changes after spawn, `y` only decreases."""

    id: int
    value: int
    x: float
    y: float
    speed: float
    state: BubbleState = BubbleState.RISING

    @property
    def selected(self) -> bool:
        return self.state is BubbleState.SELECTED

    @property
    def clickable(self) -> bool:
        return self.state in (BubbleState.RISING, BubbleState.SELECTED)

    def center(self, size: float) -> Vec2:
        return Vec2(self.x + size / 2, self.y + size / 2)


class BubbleRegistry:
    """Owns every bubble on screen, in spawn order."""

    def __init__(self) -> None:
        self._bubbles: Dict[int, Bubble] = {}

    def add(self, bubble: Bubble) -> None:
        self._bubbles[bubble.id] = bubble

    def get(self, bubble_id: Optional[int]) -> Optional[Bubble]:
        if bubble_id is None:
            return None
        return self._bubbles.get(bubble_id)

    def remove(self, bubble_id: int) -> Optional[Bubble]:
        """Drop a bubble; unknown ids are ignored."""
        bubble = self._bubbles.pop(bubble_id, None)
        if bubble is not None:
            bubble.state = BubbleState.REMOVED
        return bubble

    def bubbles(self) -> Tuple[Bubble, ...]:
        return tuple(self._bubbles.values())

    def xs(self) -> List[float]:
        return [bubble.x for bubble in self._bubbles.values()]

    def clear(self) -> List[Bubble]:
        removed = list(self._bubbles.values())
        for bubble in removed:
            bubble.state = BubbleState.REMOVED
        self._bubbles.clear()
        return removed

    def __contains__(self, bubble_id: object) -> bool:
        return bubble_id in self._bubbles

    def __len__(self) -> int:
        return len(self._bubbles)

    def __iter__(self) -> Iterator[Bubble]:
        return iter(tuple(self._bubbles.values()))


class GameListener:
    """Receives engine events. Override what you need; the rest are no-ops."""

    def on_bubble_spawned(self, bubble_id: int, value: int, x: float, y: float) -> None:
        pass

    def on_bubble_position_changed(self, bubble_id: int, y: float) -> None:
        pass

    def on_bubble_selected(self, bubble_id: int) -> None:
        pass

    def on_bubble_deselected(self, bubble_id: int) -> None:
        pass

    def on_bubble_popping(self, bubble_id: int) -> None:
        pass

    def on_bubble_removed(self, bubble_id: int) -> None:
        pass

    def on_pop(self) -> None:
        pass

    def on_score_changed(self, score: int) -> None:
        pass

    def on_level_changed(self, level: int) -> None:
        pass

    def on_progress_changed(self, popped: int, total: int) -> None:
        pass

    def on_level_complete(self) -> None:
        pass

    def on_game_over(self, final_score: int, final_level: int) -> None:
        pass


class BubbleGame:
    """One play session: level controller, bubble registry and selection rules."""

    def __init__(
        self,
        config: Optional[GameConfig] = None,
        *,
        scheduler: Optional[Scheduler] = None,
        rng: Optional[random.Random] = None,
        rng_seed: Optional[int] = None,
        listeners: Iterable[GameListener] = (),
    ) -> None:
        self.config = config or GameConfig()
        self.scheduler = scheduler or Scheduler()
        self._rng = rng or random.Random(rng_seed)
        self._listeners: List[GameListener] = list(listeners)
        self._registry = BubbleRegistry()
        self._ledger = SpeedLedger()
        self._active_pairs: Set[PairKey] = set()
        self._pair_types: List[PairType] = unique_pair_types()
        self._id_counter = itertools.count()
        self._session_ids = itertools.count(1)
        self._batch_ids = itertools.count(1)
        self._session = 0
        self._batch = 0
        self._tick: Optional[Timer] = None

        self.state = GameState.IDLE
        self.paused = False
        self.score = 0
        self.level = 1
        self.quota = self.config.quota_for(1)
        self.popped = 0
        self.base_speed = self.config.base_speed
        self.selected_id: Optional[int] = None
        self.final_score: Optional[int] = None
        self.final_level: Optional[int] = None

    # --------------------------------------------------------------------- #
    # Public API
    # --------------------------------------------------------------------- #
    def add_listener(self, listener: GameListener) -> None:
        self._listeners.append(listener)

    def bubbles(self) -> Tuple[Bubble, ...]:
        """Expose current bubbles without allowing external mutation of the set."""
        return self._registry.bubbles()

    def get_bubble(self, bubble_id: int) -> Optional[Bubble]:
        return self._registry.get(bubble_id)

    @property
    def active_pairs(self) -> frozenset:
        return frozenset(self._active_pairs)

    @property
    def ledger(self) -> SpeedLedger:
        return self._ledger

    def update(self, elapsed_ms: int) -> int:
        """Advance the virtual clock by `elapsed_ms`."""
        return self.scheduler.advance(elapsed_ms)

    def start_session(self) -> None:
        """Reset everything and begin level 1."""
        self._stop_tick()
        for bubble in self._registry.clear():
            self._emit("on_bubble_removed", bubble.id)
        self.selected_id = None

        self._session = next(self._session_ids)
        self.score = 0
        self.level = 1
        self.quota = self.config.quota_for(1)
        self.popped = 0
        self.base_speed = self.config.base_speed
        self.final_score = None
        self.final_level = None
        self.paused = False
        self._ledger.clear()
        self._active_pairs.clear()
        self.state = GameState.RUNNING
        logger.info("session %d started", self._session)

        self._emit_display()
        self.spawn_batch()
        self._start_tick()

    def spawn_batch(self) -> List[int]:
        """Choose pair types for this level and queue their bubbles. Returns queued values."""
        pairs_needed = math.ceil(self.quota / 2)
        available = [
            pair for pair in self._pair_types if pair_key(*pair) not in self._active_pairs
        ]

        if len(available) >= pairs_needed:
            selected = shuffled(available, self._rng)[:pairs_needed]
        else:
            selected = list(available)
            cycle = shuffled(self._pair_types, self._rng)
            while len(selected) < pairs_needed:
                selected.append(cycle[len(selected) % len(cycle)])

        for pair in selected:
            self._active_pairs.add(pair_key(*pair))

        values = [value for pair in selected for value in pair]
        if len(values) > self.quota:
            values.pop()
        self._rng.shuffle(values)

        self._batch = next(self._batch_ids)
        batch = self._batch
        for index, value in enumerate(values):
            self.scheduler.call_later(
                index * self.config.spawn_stagger_ms,
                lambda value=value: self._spawn_if_current(batch, value),
            )

        logger.debug("level %d batch %d queued %s", self.level, batch, values)
        return values

    def advance_level(self) -> bool:
        """Move from a completed level to the next one."""
        if self.state is not GameState.LEVEL_COMPLETE:
            return False

        self.level += 1
        self.quota = self.config.quota_for(self.level)
        self.popped = 0
        self._ledger.clear()
        self._active_pairs.clear()
        self.base_speed = self.config.speed_for(self.level)
        self.state = GameState.RUNNING
        logger.info("level %d: %d bubbles", self.level, self.quota)

        self._emit_display()
        self.spawn_batch()
        self._start_tick()
        return True

    def toggle_pause(self) -> bool:
        if self.state is GameState.RUNNING:
            self.paused = not self.paused
        return self.paused

    def spawn(self, value: int) -> Bubble:
        """Place a new bubble at the bottom edge."""
        cfg = self.config
        x = find_position(
            cfg.max_x,
            self._registry.xs(),
            self._rng,
            min_distance=cfg.min_distance,
            attempts=cfg.placement_attempts,
        )
        speed = assign_speed(
            value,
            self._ledger,
            self._rng,
            low=cfg.speed_min,
            high=cfg.speed_max,
            epsilon=cfg.speed_epsilon,
            attempts=cfg.speed_attempts,
        )
        bubble = Bubble(id=next(self._id_counter), value=value, x=x, y=cfg.height, speed=speed)
        self._registry.add(bubble)
        self._emit("on_bubble_spawned", bubble.id, value, x, bubble.y)
        return bubble

    def advance_all(self) -> bool:
        """Rise every bubble by its speed. Returns True when one escaped the top."""
        for bubble in reversed(self._registry.bubbles()):
            bubble.y -= bubble.speed
            self._emit("on_bubble_position_changed", bubble.id, bubble.y)
            if bubble.y < self.config.top_threshold:
                logger.info("bubble %d (%d) escaped", bubble.id, bubble.value)
                self._game_over()
                return True
        return False

    def pop_pair(self, first_id: int, second_id: int) -> bool:
        first = self._registry.get(first_id)
        second = self._registry.get(second_id)
        if first is None or second is None or first is second:
            return False
        if not (first.clickable and second.clickable):
            return False

        for bubble in (first, second):
            bubble.state = BubbleState.POPPING
            self._emit("on_bubble_popping", bubble.id)
        self._emit("on_pop")

        # Freed now rather than after removal, so the type can respawn mid-animation.
        self._active_pairs.discard(pair_key(first.value, second.value))
        self.popped += 2
        self._emit("on_progress_changed", self.popped, self.quota)

        self.scheduler.call_later(
            self.config.pop_delay_ms,
            lambda: self._finish_pop(first_id, second_id),
        )
        return True

    def remove(self, bubble_id: int) -> None:
        bubble = self._registry.remove(bubble_id)
        if bubble is None:
            return
        if self.selected_id == bubble_id:
            self.selected_id = None
        self._emit("on_bubble_removed", bubble_id)

    def click(self, bubble_id: int) -> SelectionOutcome:
        if self.state is not GameState.RUNNING or self.paused:
            return SelectionOutcome.IGNORED
        bubble = self._registry.get(bubble_id)
        if bubble is None or not bubble.clickable:
            return SelectionOutcome.IGNORED

        selected = self._registry.get(self.selected_id)
        if selected is None:
            self._select(bubble)
            return SelectionOutcome.SELECTED

        if selected is bubble:
            self._deselect(bubble)
            return SelectionOutcome.DESELECTED

        if selected.value + bubble.value == self.config.target_sum:
            self.selected_id = None
            self.pop_pair(selected.id, bubble.id)
            self.score += self.config.points_per_pair * self.level
            self._emit("on_score_changed", self.score)
            return SelectionOutcome.MATCHED

        self._deselect(selected)
        self._select(bubble)
        return SelectionOutcome.RESELECTED

    def click_at(self, point: Tuple[float, float]) -> SelectionOutcome:
        bubble = self.bubble_at(point)
        if bubble is None:
            return SelectionOutcome.IGNORED
        return self.click(bubble.id)

    def bubble_at(self, point: Tuple[float, float]) -> Optional[Bubble]:
        """Clickable bubble under `point`, nearest centre first."""
        size = self.config.bubble_size
        pointer = Vec2(*point)
        candidates = [
            (bubble, (bubble.center(size) - pointer).length())
            for bubble in self._registry
            if bubble.clickable
        ]
        candidates = [(bubble, d) for bubble, d in candidates if d <= size / 2]
        if not candidates:
            return None

        candidates.sort(key=lambda item: item[1])
        return candidates[0][0]

    # --------------------------------------------------------------------- #
    # Internal helpers
    # --------------------------------------------------------------------- #
    def _spawn_if_current(self, batch: int, value: int) -> None:
        if self.state is GameState.RUNNING and batch == self._batch:
            self.spawn(value)

    def _finish_pop(self, first_id: int, second_id: int) -> None:
        self.remove(first_id)
        self.remove(second_id)
        self._check_level_empty()

    def _check_level_empty(self) -> None:
        if len(self._registry) == 0 and self.state is GameState.RUNNING:
            self.state = GameState.LEVEL_COMPLETE
            self._stop_tick()
            logger.info("level %d complete, score %d", self.level, self.score)
            self._emit("on_level_complete")

    def _game_over(self) -> None:
        if self.state is not GameState.RUNNING:
            return
        self.state = GameState.GAME_OVER
        self._stop_tick()
        self.final_score = self.score
        self.final_level = self.level
        self._active_pairs.clear()

        selected = self._registry.get(self.selected_id)
        if selected is not None:
            self._deselect(selected)

        remaining = shuffled(
            [bubble.id for bubble in self._registry if bubble.clickable], self._rng
        )
        stagger = self.config.game_over_stagger_ms
        for index, bubble_id in enumerate(remaining):
            self.scheduler.call_later(
                index * stagger, lambda bubble_id=bubble_id: self._burst(bubble_id)
            )

        session = self._session
        self.scheduler.call_later(
            len(remaining) * stagger + self.config.game_over_report_delay_ms,
            lambda: self._report_game_over(session),
        )
        logger.info("game over at level %d with %d points", self.level, self.score)

    def _burst(self, bubble_id: int) -> None:
        bubble = self._registry.get(bubble_id)
        if bubble is None or not bubble.clickable:
            return
        bubble.state = BubbleState.POPPING
        self._emit("on_pop")
        self._emit("on_bubble_popping", bubble_id)
        self.scheduler.call_later(self.config.pop_delay_ms, lambda: self.remove(bubble_id))

    def _report_game_over(self, session: int) -> None:
        if session == self._session and self.state is GameState.GAME_OVER:
            self._emit("on_game_over", self.final_score, self.final_level)

    def _select(self, bubble: Bubble) -> None:
        bubble.state = BubbleState.SELECTED
        self.selected_id = bubble.id
        self._emit("on_bubble_selected", bubble.id)

    def _deselect(self, bubble: Bubble) -> None:
        bubble.state = BubbleState.RISING
        if self.selected_id == bubble.id:
            self.selected_id = None
        self._emit("on_bubble_deselected", bubble.id)

    def _on_tick(self) -> None:
        if self.state is GameState.RUNNING and not self.paused:
            self.advance_all()

    def _start_tick(self) -> None:
        self._stop_tick()
        self._tick = self.scheduler.call_every(self.config.tick_ms, self._on_tick)

    def _stop_tick(self) -> None:
        if self._tick is not None:
            self._tick.cancel()
            self._tick = None

    def _emit_display(self) -> None:
        self._emit("on_score_changed", self.score)
        self._emit("on_level_changed", self.level)
        self._emit("on_progress_changed", self.popped, self.quota)

    def _emit(self, event: str, *args) -> None:
        for listener in self._listeners:
            handler = getattr(listener, event, None)
            if handler is not None:
                handler(*args)


def create_game(
    config: Optional[GameConfig] = None,
    *,
    rng_seed: Optional[int] = None,
    listeners: Iterable[GameListener] = (),
) -> BubbleGame:
    """Build a session with its own clock and random source."""
    return BubbleGame(config, scheduler=Scheduler(), rng_seed=rng_seed, listeners=listeners)


__all__ = [
    "Bubble",
    "BubbleGame",
    "BubbleRegistry",
    "BubbleState",
    "GameListener",
    "GameState",
    "SelectionOutcome",
    "Vec2",
    "create_game",
]
