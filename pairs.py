"""Catalog of number pairs that add up to the target sum."""

from __future__ import annotations

import random
from typing import Iterable, List, Sequence, Tuple, TypeVar

PairType = Tuple[int, int]
PairKey = Tuple[int, int]  # (smaller, larger)

T = TypeVar("T")

_BASE_PAIRS: Tuple[PairType, ...] = ((0, 10), (1, 9), (2, 8), (3, 7), (4, 6), (5, 5))

# Backing table repeats each pair three times. Draws go through
# unique_pair_types(), so the repeats do not bias anything.
NUMBER_PAIRS: Tuple[PairType, ...] = _BASE_PAIRS * 3


def pair_key(a: int, b: int) -> PairKey:
    """Order-independent key for the pair (a, b)."""
    return (a, b) if a <= b else (b, a)


def unique_pair_types(pairs: Iterable[PairType] = NUMBER_PAIRS) -> List[PairType]:
    """Deduplicate `pairs` by key, keeping first-seen order."""
    seen = set()
    unique: List[PairType] = []
    for a, b in pairs:
        key = pair_key(a, b)
        if key in seen:
            continue
        seen.add(key)
        unique.append((a, b))
    return unique


def shuffled(items: Sequence[T], rng: random.Random) -> List[T]:
    """Return a Fisher-Yates shuffled copy of `items`."""
    copy = list(items)
    rng.shuffle(copy)
    return copy


__all__ = [
    "NUMBER_PAIRS",
    "PairKey",
    "PairType",
    "pair_key",
    "shuffled",
    "unique_pair_types",
]
