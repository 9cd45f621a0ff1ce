"""
Random sources for deck shuffling.

The engine never reaches for a global RNG: every session is handed a
RandomSource so tests can substitute a seeded one and replay shuffles.
"""

from __future__ import annotations
from typing import Protocol, MutableSequence, TypeVar
import os
import random

from .errors import InvalidArgumentError

T = TypeVar("T")


class RandomSource(Protocol):
    """Uniform integer source."""

    def randbelow(self, n: int) -> int:
        """Return an int uniformly distributed in [0, n)."""
        ...


class SeededRandomSource:
    """
    Reproducible source backed by random.Random.

    randrange() is range-correct (it rejects out-of-range draws
    internally), so there is no modulo bias.
    """

    def __init__(self, seed: int | str | None = None):
        self.seed = seed
        self._random = random.Random(seed)

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise InvalidArgumentError(f"n must be > 0 (got {n})")
        return self._random.randrange(n)


class SystemRandomSource:
    """
    Non-reproducible source reading bytes from os.urandom.

    Draws the minimal number of bits that can represent n - 1 and
    rejects values >= n, so every value in range is equally likely.
    """

    def randbelow(self, n: int) -> int:
        if n <= 0:
            raise InvalidArgumentError(f"n must be > 0 (got {n})")
        if n == 1:
            return 0
        bits = (n - 1).bit_length()
        byte_count = (bits + 7) // 8
        mask = (1 << bits) - 1
        while True:
            value = int.from_bytes(os.urandom(byte_count), "big") & mask
            if value < n:
                return value


def fisher_yates_shuffle(items: MutableSequence[T], rng: RandomSource) -> None:
    """Shuffle items in place. Lists of length 0 or 1 are left untouched."""
    if rng is None:
        raise InvalidArgumentError("rng is required")
    for i in range(len(items) - 1, 0, -1):
        j = rng.randbelow(i + 1)
        items[i], items[j] = items[j], items[i]
