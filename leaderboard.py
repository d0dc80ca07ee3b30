"""Top-ten high score table with JSON persistence."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Union

logger = logging.getLogger(__name__)

MAX_ENTRIES = 10
MAX_NAME_LENGTH = 20
DEFAULT_NAME = "Anonymous"


@dataclass(frozen=True)
class LeaderboardEntry:
    name: str
    score: int


class ScoreStorage(Protocol):
    """Where the raw list of {name, score} rows lives between sessions."""

    def read_scores(self) -> List[Dict]:
        ...

    def write_scores(self, rows: List[Dict]) -> None:
        ...


def normalize_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()[:MAX_NAME_LENGTH]
    return cleaned or DEFAULT_NAME


class MemoryScoreStorage:
    """Keeps the raw score list in memory; handy for tests and demos."""

    def __init__(self, rows: Optional[List[Dict]] = None) -> None:
        self.rows: List[Dict] = list(rows or [])

    def read_scores(self) -> List[Dict]:
        return list(self.rows)

    def write_scores(self, rows: List[Dict]) -> None:
        self.rows = list(rows)


class JsonScoreStorage:
    """Reads and writes the score list as a JSON array of {name, score}."""

    def __init__(self, path: Union[str, os.PathLike]) -> None:
        self.path = Path(path)

    def read_scores(self) -> List[Dict]:
        if not self.path.exists():
            return []
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning("could not read scores from %s: %s", self.path, exc)
            return []
        if not isinstance(data, list):
            logger.warning("ignoring malformed score file %s", self.path)
            return []
        return data

    def write_scores(self, rows: List[Dict]) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump(rows, f, indent=2)
        except OSError as exc:
            logger.warning("could not save scores to %s: %s", self.path, exc)


class Leaderboard:
    """Scores sorted best first, never more than `MAX_ENTRIES` long."""

    def __init__(self, storage: ScoreStorage) -> None:
        self.storage = storage
        self.entries: List[LeaderboardEntry] = []
        self.load()

    def load(self) -> List[LeaderboardEntry]:
        entries = []
        for row in self.storage.read_scores():
            entry = _entry_from_row(row)
            if entry is not None:
                entries.append(entry)
        entries.sort(key=lambda entry: entry.score, reverse=True)
        self.entries = entries[:MAX_ENTRIES]
        return list(self.entries)

    def save(self) -> None:
        self.storage.write_scores([asdict(entry) for entry in self.entries])

    def is_high_score(self, score: int) -> bool:
        return len(self.entries) < MAX_ENTRIES or score > self.entries[-1].score

    def qualifies(self, score: int) -> bool:
        """Whether a finished game should prompt for a name."""
        return score > 0 and self.is_high_score(score)

    def pending_rank(self, score: int) -> Optional[int]:
        """Row a qualifying score would take, counted from 0."""
        if not self.qualifies(score):
            return None
        for index, entry in enumerate(self.entries):
            if score > entry.score:
                return index
        return len(self.entries)

    def add(self, name: Optional[str], score: int) -> LeaderboardEntry:
        entry = LeaderboardEntry(name=normalize_name(name), score=int(score))
        self.entries.append(entry)
        self.entries.sort(key=lambda item: item.score, reverse=True)
        del self.entries[MAX_ENTRIES:]
        self.save()
        logger.info("saved score %d for %s", entry.score, entry.name)
        return entry

    def clear(self) -> None:
        self.entries = []
        self.save()

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(list(self.entries))


def _entry_from_row(row) -> Optional[LeaderboardEntry]:
    if not isinstance(row, dict):
        return None
    try:
        return LeaderboardEntry(name=normalize_name(row.get("name")), score=int(row["score"]))
    except (KeyError, TypeError, ValueError):
        logger.debug("skipping invalid score row %r", row)
        return None


__all__ = [
    "DEFAULT_NAME",
    "JsonScoreStorage",
    "Leaderboard",
    "LeaderboardEntry",
    "MAX_ENTRIES",
    "MemoryScoreStorage",
    "ScoreStorage",
    "normalize_name",
]
