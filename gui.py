"""Pygame front-end for the number bubble game powered by logic.py."""

from __future__ import annotations

import logging
import os
import random
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import pygame

from audio import PopSounds
from config import GameConfig
from leaderboard import MAX_ENTRIES, MAX_NAME_LENGTH, JsonScoreStorage, Leaderboard
from logic import BubbleGame, BubbleState, GameListener, GameState, create_game

logger = logging.getLogger(__name__)

# --------------------------------------------------------------------------- #
# Configuration
# --------------------------------------------------------------------------- #
WINDOW_SIZE: Tuple[int, int] = (900, 720)
HUD_HEIGHT = 64
BACKGROUND_COLOR = (226, 242, 255)
PLAYFIELD_COLOR = (240, 249, 255)
HUD_COLOR = (44, 62, 80)
HUD_TEXT_COLOR = (250, 250, 250)
TEXT_COLOR = (35, 35, 40)
SELECTED_RING_COLOR = (255, 215, 0)
OVERLAY_COLOR = (0, 0, 0, 150)
PANEL_COLOR = (255, 255, 255)
NEW_SCORE_COLOR = (255, 243, 176)
FPS = 60
BUBBLE_TINTS = [
    (255, 107, 107), (78, 205, 196), (69, 183, 209), (150, 206, 180), (254, 202, 87),
    (255, 159, 243), (84, 160, 255), (95, 39, 205), (0, 210, 211), (255, 159, 67),
]
PARTICLE_COLOR = (200, 230, 255)
ASSET_DIR = Path(__file__).resolve().parent / "assets"
SCORES_ENV = "BUBBLE_SCORES_FILE"

INSTRUCTIONS = [
    "Click two bubbles that add up to 10 to pop them.",
    "Click a selected bubble again to deselect it.",
    "Don't let any bubble float past the top!",
    "",
    "Space - start / restart    P - pause",
    "N - next level    H - help    C - clear scores",
    "Esc - exit",
]


def scores_path() -> Path:
    override = os.environ.get(SCORES_ENV)
    if override:
        return Path(override)
    if getattr(sys, "frozen", False):
        return Path(sys.executable).resolve().parent / "highscores.json"
    return Path(__file__).resolve().parent / "highscores.json"


@dataclass
class Particle:
    x: float
    y: float
    vx: float
    vy: float
    size: float
    life: float
    age: float = 0.0

    def update(self, dt: float) -> None:
        self.age += dt
        self.x += self.vx * dt
        self.y += self.vy * dt

    @property
    def alive(self) -> bool:
        return self.age < self.life


class PygameView(GameListener):
    """Collects engine events into what the next frame needs to draw."""

    def __init__(self, game_config: GameConfig, sounds: Optional[PopSounds] = None) -> None:
        self.config = game_config
        self.sounds = sounds
        self.score = 0
        self.level = 1
        self.popped = 0
        self.total = game_config.initial_quota
        self.tints: Dict[int, Tuple[int, int, int]] = {}
        self.popping_since: Dict[int, float] = {}
        self.particles: List[Particle] = []
        self.game_over: Optional[Tuple[int, int]] = None
        self.awaiting_name = False
        self.clock_ms = 0.0
        self._rng = random.Random()
        self._positions: Dict[int, Tuple[float, float]] = {}

    def on_bubble_spawned(self, bubble_id: int, value: int, x: float, y: float) -> None:
        self.tints[bubble_id] = self._rng.choice(BUBBLE_TINTS)
        self._positions[bubble_id] = (x, y)

    def on_bubble_position_changed(self, bubble_id: int, y: float) -> None:
        x, _ = self._positions.get(bubble_id, (0.0, y))
        self._positions[bubble_id] = (x, y)

    def on_bubble_popping(self, bubble_id: int) -> None:
        self.popping_since[bubble_id] = self.clock_ms
        x, y = self._positions.get(bubble_id, (0.0, 0.0))
        half = self.config.bubble_size / 2
        self._spawn_particles(x + half, y + half)

    def on_bubble_removed(self, bubble_id: int) -> None:
        self.tints.pop(bubble_id, None)
        self.popping_since.pop(bubble_id, None)
        self._positions.pop(bubble_id, None)

    def on_pop(self) -> None:
        if self.sounds is not None:
            self.sounds.play()

    def on_score_changed(self, score: int) -> None:
        self.score = score

    def on_level_changed(self, level: int) -> None:
        self.level = level
        self.game_over = None

    def on_progress_changed(self, popped: int, total: int) -> None:
        self.popped = popped
        self.total = total

    def on_game_over(self, final_score: int, final_level: int) -> None:
        self.game_over = (final_score, final_level)
        self.awaiting_name = True

    def update(self, dt: float) -> None:
        self.clock_ms += dt * 1000.0
        for particle in self.particles:
            particle.update(dt)
        self.particles = [p for p in self.particles if p.alive]

    def _spawn_particles(self, x: float, y: float) -> None:
        for _ in range(self._rng.randint(6, 9)):
            self.particles.append(
                Particle(
                    x=x + self._rng.uniform(-20.0, 20.0),
                    y=y + self._rng.uniform(-20.0, 20.0),
                    vx=self._rng.uniform(-30.0, 30.0),
                    vy=self._rng.uniform(40.0, 80.0),
                    size=self._rng.uniform(3.0, 5.0),
                    life=self._rng.uniform(1.0, 1.8),
                )
            )


class NameEntry:
    """Inline name field shown when a finished game makes the table."""

    def __init__(self, score: int, rank: int) -> None:
        self.score = score
        self.rank = rank
        self.text = ""

    def handle_key(self, event: pygame.event.Event) -> bool:
        """Returns True when the player confirmed the name."""
        if event.key in (pygame.K_RETURN, pygame.K_KP_ENTER):
            return True
        if event.key == pygame.K_BACKSPACE:
            self.text = self.text[:-1]
        elif event.unicode and event.unicode.isprintable() and len(self.text) < MAX_NAME_LENGTH:
            self.text += event.unicode
        return False


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    pygame.init()
    pygame.display.set_caption("Bubble Friends")
    screen = pygame.display.set_mode(WINDOW_SIZE)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont("Segoe UI", 18)
    big_font = pygame.font.SysFont("Segoe UI", 34, bold=True)
    bubble_font = pygame.font.SysFont("Segoe UI", 28, bold=True)

    game_config = GameConfig(width=WINDOW_SIZE[0], height=WINDOW_SIZE[1] - HUD_HEIGHT)
    view = PygameView(game_config, PopSounds(ASSET_DIR))
    game = create_game(game_config, listeners=[view])
    leaderboard = Leaderboard(JsonScoreStorage(scores_path()))
    logger.info("high scores: %s (%d entries)", leaderboard.storage.path, len(leaderboard))

    show_help = False
    confirm_clear = False
    name_entry: Optional[NameEntry] = None
    running = True

    while running:
        elapsed = clock.tick(FPS)

        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.KEYDOWN:
                if name_entry is not None:
                    if name_entry.handle_key(event):
                        leaderboard.add(name_entry.text, name_entry.score)
                        name_entry = None
                    continue
                if confirm_clear:
                    if event.key == pygame.K_y:
                        leaderboard.clear()
                    confirm_clear = False
                    continue
                if event.key == pygame.K_ESCAPE:
                    running = False
                elif event.key == pygame.K_SPACE and game.state in (GameState.IDLE, GameState.GAME_OVER):
                    game.start_session()
                elif event.key == pygame.K_r:
                    game.start_session()
                elif event.key == pygame.K_p:
                    game.toggle_pause()
                elif event.key == pygame.K_n:
                    game.advance_level()
                elif event.key == pygame.K_h:
                    show_help = not show_help
                elif event.key == pygame.K_c:
                    confirm_clear = True
            elif event.type == pygame.MOUSEBUTTONDOWN and event.button == 1:
                mx, my = event.pos
                if game.state is GameState.LEVEL_COMPLETE:
                    game.advance_level()
                elif my >= HUD_HEIGHT:
                    game.click_at((mx, my - HUD_HEIGHT))

        game.update(elapsed)
        view.update(elapsed / 1000.0)

        if view.awaiting_name:
            view.awaiting_name = False
            final_score = view.game_over[0]
            rank = leaderboard.pending_rank(final_score)
            if rank is not None:
                name_entry = NameEntry(final_score, rank)

        _draw_scene(screen, bubble_font, game, view)
        _draw_hud(screen, font, game, view)
        if show_help:
            _draw_panel(screen, big_font, font, "How to play", INSTRUCTIONS)
        elif confirm_clear:
            _draw_panel(screen, big_font, font, "Clear high scores?", ["Y - clear    any other key - cancel"])
        elif game.state is GameState.IDLE:
            _draw_panel(screen, big_font, font, "Bubble Friends", INSTRUCTIONS)
        elif game.state is GameState.LEVEL_COMPLETE:
            _draw_panel(
                screen, big_font, font, f"Level {game.level} complete!",
                [f"Score: {view.score}", "Click or press N for the next level"],
            )
        elif view.game_over is not None:
            _draw_game_over(screen, big_font, font, view, leaderboard, name_entry)
        elif game.paused:
            _draw_panel(screen, big_font, font, "Paused", ["Press P to resume"])
        pygame.display.flip()

    pygame.quit()


def _draw_scene(
    screen: pygame.Surface,
    bubble_font: pygame.font.Font,
    game: BubbleGame,
    view: PygameView,
) -> None:
    screen.fill(BACKGROUND_COLOR)
    play_rect = pygame.Rect(0, HUD_HEIGHT, game.config.width, game.config.height)
    pygame.draw.rect(screen, PLAYFIELD_COLOR, play_rect)

    size = game.config.bubble_size
    radius = size / 2
    for bubble in game.bubbles():
        cx = int(bubble.x + radius)
        cy = int(bubble.y + radius + HUD_HEIGHT)
        tint = view.tints.get(bubble.id, BUBBLE_TINTS[0])
        scale, alpha = 1.0, 255
        if bubble.state is BubbleState.POPPING:
            since = view.popping_since.get(bubble.id, view.clock_ms)
            progress = min(1.0, (view.clock_ms - since) / game.config.pop_delay_ms)
            scale = 1.0 + 0.4 * progress
            alpha = int(255 * (1.0 - progress))

        r = int(radius * scale)
        surface = pygame.Surface((r * 2 + 8, r * 2 + 8), pygame.SRCALPHA)
        center = (r + 4, r + 4)
        pygame.draw.circle(surface, (*tint, min(alpha, 190)), center, r)
        pygame.draw.circle(surface, (255, 255, 255, alpha), center, r, width=2)
        highlight = (center[0] - r // 3, center[1] - r // 3)
        pygame.draw.circle(surface, (255, 255, 255, min(alpha, 140)), highlight, max(2, r // 5))
        if bubble.selected:
            pygame.draw.circle(surface, SELECTED_RING_COLOR, center, r + 3, width=4)
        screen.blit(surface, (cx - center[0], cy - center[1]))

        if bubble.state is not BubbleState.POPPING:
            label = bubble_font.render(str(bubble.value), True, TEXT_COLOR)
            screen.blit(label, label.get_rect(center=(cx, cy)))

    for particle in view.particles:
        fade = max(0.0, 1.0 - particle.age / particle.life)
        size_px = max(1, int(particle.size * fade + 1))
        pygame.draw.circle(
            screen,
            PARTICLE_COLOR,
            (int(particle.x), int(particle.y + HUD_HEIGHT)),
            size_px,
        )


def _draw_hud(
    screen: pygame.Surface,
    font: pygame.font.Font,
    game: BubbleGame,
    view: PygameView,
) -> None:
    pygame.draw.rect(screen, HUD_COLOR, pygame.Rect(0, 0, WINDOW_SIZE[0], HUD_HEIGHT))
    items = [
        f"Score: {view.score}",
        f"Level: {view.level}",
        f"Bubbles: {view.popped}/{view.total}",
    ]
    if game.paused:
        items.append("Paused")
    for idx, text in enumerate(items):
        surface = font.render(text, True, HUD_TEXT_COLOR)
        screen.blit(surface, (20 + idx * 180, (HUD_HEIGHT - surface.get_height()) // 2))

    hint = font.render("H - help", True, HUD_TEXT_COLOR)
    screen.blit(hint, (WINDOW_SIZE[0] - hint.get_width() - 20, (HUD_HEIGHT - hint.get_height()) // 2))


def _draw_panel(
    screen: pygame.Surface,
    big_font: pygame.font.Font,
    font: pygame.font.Font,
    title: str,
    lines: List[str],
) -> pygame.Rect:
    overlay = pygame.Surface(WINDOW_SIZE, pygame.SRCALPHA)
    overlay.fill(OVERLAY_COLOR)
    screen.blit(overlay, (0, 0))

    height = 90 + len(lines) * 26
    panel = pygame.Rect(0, 0, 520, height)
    panel.center = (WINDOW_SIZE[0] // 2, WINDOW_SIZE[1] // 2)
    pygame.draw.rect(screen, PANEL_COLOR, panel, border_radius=16)

    heading = big_font.render(title, True, TEXT_COLOR)
    screen.blit(heading, heading.get_rect(midtop=(panel.centerx, panel.top + 18)))
    for idx, text in enumerate(lines):
        surface = font.render(text, True, TEXT_COLOR)
        screen.blit(surface, surface.get_rect(midtop=(panel.centerx, panel.top + 72 + idx * 26)))
    return panel


def _draw_game_over(
    screen: pygame.Surface,
    big_font: pygame.font.Font,
    font: pygame.font.Font,
    view: PygameView,
    leaderboard: Leaderboard,
    name_entry: Optional[NameEntry],
) -> None:
    final_score, final_level = view.game_over
    entries = list(leaderboard)
    rows: List[Tuple[str, str, bool]] = [(entry.name, str(entry.score), False) for entry in entries]
    if name_entry is not None:
        cursor = "_" if int(view.clock_ms / 500) % 2 == 0 else " "
        rows.insert(name_entry.rank, (name_entry.text + cursor, str(name_entry.score), True))
    rows = rows[:MAX_ENTRIES]
    rows += [("---", "---", False)] * (MAX_ENTRIES - len(rows))

    lines = [f"Final score: {final_score}    Level reached: {final_level}", ""]
    panel = _draw_panel(screen, big_font, font, "Game Over", lines + [""] * (MAX_ENTRIES + 2))

    top = panel.top + 72 + len(lines) * 26
    for idx, (name, score, highlight) in enumerate(rows):
        row_rect = pygame.Rect(panel.left + 40, top + idx * 26, panel.width - 80, 24)
        if highlight:
            pygame.draw.rect(screen, NEW_SCORE_COLOR, row_rect, border_radius=6)
        for text, x in ((f"{idx + 1}.", row_rect.left + 8), (name, row_rect.left + 50)):
            screen.blit(font.render(text, True, TEXT_COLOR), (x, row_rect.top))
        score_surface = font.render(score, True, TEXT_COLOR)
        screen.blit(score_surface, (row_rect.right - score_surface.get_width() - 8, row_rect.top))

    footer = "Enter - save name" if name_entry is not None else "Space - play again"
    surface = font.render(footer, True, TEXT_COLOR)
    screen.blit(surface, surface.get_rect(midtop=(panel.centerx, top + MAX_ENTRIES * 26 + 8)))


if __name__ == "__main__":
    main()
