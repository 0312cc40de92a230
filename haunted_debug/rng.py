"""Seedable random stream shared by every probabilistic step of a run.

One RandomStream is created per game run and threaded through the event
engine and the action resolver, so a fixed seed replays a run exactly.
getstate() and setstate() carry the stream across a save and restore.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from typing import TypeVar

T = TypeVar("T")

# random.Random state with the internal tuple as a list, so it survives JSON
RandomState = tuple[int, list[int], float | None]


class RandomStream:
    """Thin wrapper around random.Random.

    Args:
        seed: Seed for a fresh generator. None seeds from the OS.
        rng:  Existing generator to draw from instead (seed is then only
              recorded, not applied).
    """

    def __init__(self, seed: int | None = None, rng: random.Random | None = None) -> None:
        self.seed = seed
        self._rng = rng if rng is not None else random.Random(seed)

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._rng.random()

    def chance(self, probability: float) -> bool:
        """True with the given probability. Values outside [0, 1] saturate."""
        return self._rng.random() < probability

    def choice(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("choice() from an empty sequence")
        return items[self._rng.randrange(len(items))]

    def getstate(self) -> RandomState | None:
        """Generator state, or None when drawing from a scripted rng."""
        if not isinstance(self._rng, random.Random):
            return None
        version, internal, gauss_next = self._rng.getstate()
        return version, list(internal), gauss_next

    def setstate(self, state: RandomState) -> None:
        version, internal, gauss_next = state
        self._rng.setstate((version, tuple(internal), gauss_next))
