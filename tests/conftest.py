import os

# Let pygame initialise without a display or audio device.
os.environ.setdefault("SDL_VIDEODRIVER", "dummy")
os.environ.setdefault("SDL_AUDIODRIVER", "dummy")
os.environ.setdefault("PYGAME_HIDE_SUPPORT_PROMPT", "1")

import pytest

from config import GameConfig
from logic import GameListener, create_game


class Recorder(GameListener):
    """Remembers every engine event in order."""

    def __init__(self):
        self.events = []

    def calls(self, event):
        return [args for name, args in self.events if name == event]


def _recording(name):
    def handler(self, *args):
        self.events.append((name, args))

    return handler


for _event in [name for name in vars(GameListener) if name.startswith("on_")]:
    setattr(Recorder, _event, _recording(_event))


class ScriptedRandom:
    """Stands in for random.Random where a test needs exact draws."""

    def __init__(self, values):
        self._values = list(values)

    def uniform(self, a, b):
        return self._values.pop(0)


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def game(recorder):
    return create_game(GameConfig(), rng_seed=7, listeners=[recorder])


@pytest.fixture
def scripted():
    return ScriptedRandom
