from __future__ import annotations

import random
import secrets
from itertools import cycle
from typing import Callable, Iterable, TypeAlias


# Any zero-argument callable returning a uniform float in [0, 1).
RandomSource: TypeAlias = Callable[[], float]


def system_source() -> RandomSource:
    return secrets.SystemRandom().random


def seeded_source(seed: int) -> RandomSource:
    """Deterministic source for replaying a roll from its seed."""

    return random.Random(seed).random


def sequence_source(values: Iterable[float]) -> RandomSource:
    """Cycle through fixed values. Mostly useful for tests and demos."""

    items = list(values)
    if not items:
        raise ValueError("sequence_source needs at least one value")
    for v in items:
        if not 0.0 <= v < 1.0:
            raise ValueError(f"random values must lie in [0, 1), got {v}")
    it = cycle(items)
    return lambda: next(it)


def face_source(faces: Iterable[int], sides: int) -> RandomSource:
    """Produce values that map onto the given die faces for a die with `sides` sides."""

    return sequence_source([(face - 0.5) / sides for face in faces])


def roll_die(source: RandomSource, sides: int) -> int:
    return int(source() * sides) + 1
