"""Pop sound effects. Missing files or a missing audio device leave the game silent."""

from __future__ import annotations

import logging
import random
from pathlib import Path
from typing import Iterable, List, Optional

import pygame

logger = logging.getLogger(__name__)

SOUND_FILES = ("bubble1.wav", "bubble2.wav", "bubble3.wav")
VOLUME = 0.6


class PopSounds:
    """Plays one of the loaded pop sounds at random."""

    def __init__(
        self,
        folder: Path,
        files: Iterable[str] = SOUND_FILES,
        *,
        volume: float = VOLUME,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._rng = rng or random.Random()
        self.sounds: List["pygame.mixer.Sound"] = []
        if not self._ensure_mixer():
            return
        for name in files:
            path = Path(folder) / name
            if not path.exists():
                continue
            try:
                sound = pygame.mixer.Sound(str(path))
            except (pygame.error, OSError) as exc:
                logger.debug("could not load %s: %s", path, exc)
                continue
            sound.set_volume(volume)
            self.sounds.append(sound)

    def play(self) -> None:
        if not self.sounds:
            return
        try:
            self._rng.choice(self.sounds).play()
        except pygame.error as exc:
            logger.debug("pop sound failed: %s", exc)

    @staticmethod
    def _ensure_mixer() -> bool:
        if pygame.mixer.get_init():
            return True
        try:
            pygame.mixer.init()
        except pygame.error as exc:
            logger.debug("audio unavailable: %s", exc)
            return False
        return True


__all__ = ["PopSounds", "SOUND_FILES"]
