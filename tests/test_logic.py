import math
from collections import Counter
from itertools import combinations

import pytest

from config import GameConfig
from logic import BubbleRegistry, BubbleState, GameState, SelectionOutcome, create_game


def _pair_in_play(game):
    return sorted(game.active_pairs)[0]


# --------------------------------------------------------------------------- #
# Session start and spawn batches
# --------------------------------------------------------------------------- #
def test_start_session_picks_three_pair_types(game, recorder):
    game.start_session()

    assert game.state is GameState.RUNNING
    assert (game.score, game.level, game.quota, game.popped) == (0, 1, 6, 0)
    assert game.base_speed == pytest.approx(0.6)
    assert len(game.active_pairs) == 3
    assert recorder.calls("on_progress_changed")[-1] == (0, 6)


def test_batch_spawns_are_staggered(game, recorder):
    game.start_session()

    game.update(0)
    assert len(game.bubbles()) == 1
    game.update(799)
    assert len(game.bubbles()) == 1
    game.update(1)
    assert len(game.bubbles()) == 2
    game.update(3200)
    assert len(game.bubbles()) == 6

    values = Counter(bubble.value for bubble in game.bubbles())
    expected = Counter(value for key in game.active_pairs for value in key)
    assert values == expected
    assert len(recorder.calls("on_bubble_spawned")) == 6


def test_spawned_bubbles_start_at_bottom(game):
    game.start_session()
    game.update(0)
    bubble = game.bubbles()[0]
    assert bubble.y == game.config.height
    assert 0.0 <= bubble.x <= game.config.max_x
    assert game.config.speed_min <= bubble.speed <= game.config.speed_max


@pytest.mark.parametrize("quota", range(1, 25))
def test_batch_never_exceeds_quota(quota):
    game = create_game(rng_seed=quota)
    game.quota = quota
    values = game.spawn_batch()
    assert len(values) == quota
    assert len(game.active_pairs) == min(math.ceil(quota / 2), 6)


def test_batch_prefers_pair_types_not_on_screen():
    game = create_game(rng_seed=2)
    game.quota = 6
    game.spawn_batch()
    first = game.active_pairs
    values = game.spawn_batch()

    assert len(game.active_pairs) == 6
    second = game.active_pairs - first
    assert Counter(values) == Counter(v for key in second for v in key)


def test_batch_cycles_all_types_when_short():
    game = create_game(rng_seed=5)
    game.quota = 16
    values = game.spawn_batch()
    assert len(values) == 16
    assert len(game.active_pairs) == 6
    counts = Counter(values)
    assert sum(counts.values()) == 16


def test_speeds_differ_for_matching_values(game):
    game.start_session()
    game.update(4000)
    by_value = {}
    for bubble in game.bubbles():
        by_value.setdefault(bubble.value, []).append(bubble.speed)
    for speeds in by_value.values():
        for a, b in combinations(speeds, 2):
            assert abs(a - b) >= 0.05


# --------------------------------------------------------------------------- #
# Selection
# --------------------------------------------------------------------------- #
def test_click_ignored_before_session(game):
    bubble = game.spawn(4)
    assert game.click(bubble.id) is SelectionOutcome.IGNORED
    assert game.selected_id is None


def test_select_and_deselect(game, recorder):
    game.start_session()
    bubble = game.spawn(4)

    assert game.click(bubble.id) is SelectionOutcome.SELECTED
    assert game.selected_id == bubble.id
    assert bubble.state is BubbleState.SELECTED

    assert game.click(bubble.id) is SelectionOutcome.DESELECTED
    assert game.selected_id is None
    assert bubble.state is BubbleState.RISING
    assert recorder.calls("on_bubble_selected") == [(bubble.id,)]
    assert recorder.calls("on_bubble_deselected") == [(bubble.id,)]


def test_wrong_pair_moves_selection(game, recorder):
    game.start_session()
    three = game.spawn(3)
    four = game.spawn(4)

    game.click(three.id)
    assert game.click(four.id) is SelectionOutcome.RESELECTED

    assert game.selected_id == four.id
    assert three.state is BubbleState.RISING
    assert four.state is BubbleState.SELECTED
    assert three.id in [b.id for b in game.bubbles()]
    assert recorder.calls("on_bubble_deselected") == [(three.id,)]
    assert game.score == 0


def test_matching_pair_pops_and_frees_pair_type(game, recorder):
    game.start_session()
    key = _pair_in_play(game)
    first = game.spawn(key[0])
    second = game.spawn(key[1])

    game.click(first.id)
    assert game.click(second.id) is SelectionOutcome.MATCHED

    assert key not in game.active_pairs
    assert first.state is BubbleState.POPPING
    assert second.state is BubbleState.POPPING
    assert game.selected_id is None
    assert game.score == 10
    assert game.popped == 2
    assert len(recorder.calls("on_pop")) == 1

    game.update(799)
    ids = [b.id for b in game.bubbles()]
    assert first.id in ids and second.id in ids

    game.update(1)
    ids = [b.id for b in game.bubbles()]
    assert first.id not in ids and second.id not in ids
    assert first.state is BubbleState.REMOVED
    assert (first.id,) in recorder.calls("on_bubble_removed")


def test_freed_pair_type_is_available_for_next_batch(game):
    game.start_session()
    key = _pair_in_play(game)
    first = game.spawn(key[0])
    second = game.spawn(key[1])
    game.click(first.id)
    game.click(second.id)

    game.quota = 2 * 4
    game.spawn_batch()
    assert key in game.active_pairs


def test_points_scale_with_level(game):
    game.start_session()
    game.level = 3
    a = game.spawn(2)
    b = game.spawn(8)
    game.click(a.id)
    game.click(b.id)
    assert game.score == 30


def test_popping_bubbles_cannot_be_clicked(game):
    game.start_session()
    a = game.spawn(1)
    b = game.spawn(9)
    game.click(a.id)
    game.click(b.id)
    assert game.click(a.id) is SelectionOutcome.IGNORED
    assert game.pop_pair(a.id, b.id) is False


def test_clicks_ignored_while_paused(game):
    game.start_session()
    bubble = game.spawn(6)
    assert game.toggle_pause() is True
    assert game.click(bubble.id) is SelectionOutcome.IGNORED
    assert game.toggle_pause() is False
    assert game.click(bubble.id) is SelectionOutcome.SELECTED


def test_click_at_hits_bubble_centre(game):
    game.start_session()
    bubble = game.spawn(5)
    half = game.config.bubble_size / 2
    assert game.bubble_at((bubble.x + half, bubble.y + half)) is bubble
    assert game.click_at((bubble.x + half, bubble.y + half)) is SelectionOutcome.SELECTED
    assert game.click_at((bubble.x + half, bubble.y - 200)) is SelectionOutcome.IGNORED


def test_remove_is_idempotent(game, recorder):
    game.start_session()
    bubble = game.spawn(7)
    game.click(bubble.id)
    game.remove(bubble.id)
    game.remove(bubble.id)
    game.remove(12345)
    assert game.selected_id is None
    assert recorder.calls("on_bubble_removed") == [(bubble.id,)]


# --------------------------------------------------------------------------- #
# Simulation loop
# --------------------------------------------------------------------------- #
def test_tick_raises_bubbles_by_their_speed(game, recorder):
    game.start_session()
    game.update(0)
    bubble = game.bubbles()[0]
    start = bubble.y

    game.update(16 * 10)
    assert bubble.y == pytest.approx(start - 10 * bubble.speed)
    assert recorder.calls("on_bubble_position_changed")[-1] == (bubble.id, bubble.y)


def test_pause_freezes_bubbles(game):
    game.start_session()
    game.update(0)
    bubble = game.bubbles()[0]
    game.toggle_pause()
    y = bubble.y
    game.update(500)
    assert bubble.y == y


def test_popping_bubble_past_top_ends_game(game, recorder):
    game.start_session()
    a = game.spawn(0)
    b = game.spawn(10)
    game.click(a.id)
    game.click(b.id)
    a.y = -69.99
    assert game.advance_all() is True
    assert game.state is GameState.GAME_OVER
    assert b.state is BubbleState.POPPING

    # bubbles already on their way out are not popped a second time
    game.update(2000)
    assert len(recorder.calls("on_pop")) == 1
    assert game.bubbles() == ()


# --------------------------------------------------------------------------- #
# Level progression
# --------------------------------------------------------------------------- #
def test_clearing_every_bubble_completes_level(recorder):
    game = create_game(GameConfig(initial_quota=2), rng_seed=1, listeners=[recorder])
    game.start_session()
    game.update(800)
    first, second = game.bubbles()
    assert first.value + second.value == 10

    game.click(first.id)
    game.click(second.id)
    assert game.state is GameState.RUNNING
    game.update(800)

    assert game.state is GameState.LEVEL_COMPLETE
    assert recorder.calls("on_level_complete") == [()]

    # the tick is stopped while the level summary shows
    assert game.scheduler.pending() == 0

    assert game.advance_level() is True
    assert game.state is GameState.RUNNING
    assert (game.level, game.quota, game.popped) == (2, 4, 0)
    assert recorder.calls("on_level_changed")[-1] == (2,)


def test_advance_level_only_from_level_complete(game):
    assert game.advance_level() is False
    game.start_session()
    assert game.advance_level() is False
    assert game.level == 1


def test_level_quota_and_speed_progression(game):
    game.start_session()
    speeds = {}
    for level in range(2, 14):
        game.state = GameState.LEVEL_COMPLETE
        game.advance_level()
        assert game.level == level
        assert game.quota == 6 + (level - 1) * 2
        assert len(game.ledger) == 0
        assert len(game.active_pairs) == min(math.ceil(game.quota / 2), 6)
        speeds[level] = game.base_speed

    assert all(speeds[level] == pytest.approx(0.6) for level in range(2, 10))
    assert all(speeds[level] == pytest.approx(0.8) for level in range(10, 14))


def test_stale_spawns_are_dropped_on_restart(game):
    game.start_session()
    game.update(0)
    game.start_session()
    assert game.bubbles() == ()

    game.update(800)
    assert len(game.bubbles()) == 2


# --------------------------------------------------------------------------- #
# Game over
# --------------------------------------------------------------------------- #
def test_escaped_bubble_ends_game_once(game, recorder):
    game.start_session()
    game.update(0)
    escaping = game.bubbles()[0]
    game.spawn(1)
    game.spawn(2)
    selected = game.spawn(3)
    game.click(selected.id)
    game.score = 40
    escaping.y = -69.9

    game.update(16)
    assert game.state is GameState.GAME_OVER
    assert (game.final_score, game.final_level) == (40, 1)
    assert game.active_pairs == frozenset()
    assert game.selected_id is None

    popping = recorder.calls("on_bubble_popping")
    assert len(popping) == 1
    game.update(149)
    assert len(recorder.calls("on_bubble_popping")) == 1
    game.update(1)
    assert len(recorder.calls("on_bubble_popping")) == 2
    game.update(300)
    assert len(recorder.calls("on_bubble_popping")) == 4
    assert len(recorder.calls("on_pop")) == 4

    game.update(549)
    assert recorder.calls("on_game_over") == []
    game.update(1)
    assert recorder.calls("on_game_over") == [(40, 1)]

    game.update(5000)
    assert game.bubbles() == ()
    assert recorder.calls("on_game_over") == [(40, 1)]
    assert game.click(selected.id) is SelectionOutcome.IGNORED
    assert game.score == 40


def test_game_over_stops_pending_spawns(game):
    game.start_session()
    game.update(0)
    game.bubbles()[0].y = -80.0
    game.update(16)
    assert game.state is GameState.GAME_OVER
    game.update(10000)
    assert game.bubbles() == ()


def test_restart_after_game_over(game, recorder):
    game.start_session()
    game.update(0)
    game.bubbles()[0].y = -80.0
    game.update(16)
    game.start_session()

    assert game.state is GameState.RUNNING
    assert game.final_score is None
    game.update(2000)
    assert recorder.calls("on_game_over") == []
    assert len(game.bubbles()) == 3


# --------------------------------------------------------------------------- #
# Registry and config
# --------------------------------------------------------------------------- #
def test_registry_keeps_spawn_order(game):
    registry = BubbleRegistry()
    for value in (1, 2, 3):
        registry.add(game.spawn(value))
    assert [b.value for b in registry.bubbles()] == [1, 2, 3]
    assert registry.remove(999) is None
    removed = registry.clear()
    assert len(registry) == 0
    assert all(b.state is BubbleState.REMOVED for b in removed)


def test_config_rules():
    config = GameConfig()
    assert config.quota_for(1) == 6
    assert config.quota_for(4) == 12
    assert config.speed_for(9) == pytest.approx(0.6)
    assert config.speed_for(25) == pytest.approx(0.8)
    assert config.with_overrides(initial_quota=2).quota_for(2) == 4


def test_config_rejects_tiny_play_area():
    with pytest.raises(ValueError):
        GameConfig(width=50.0)
