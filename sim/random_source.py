"""
Deterministic Random Source.

Seeded Mulberry32 generator used by every part of the simulation so that a
generation replays exactly from its seed. All draws come from one 32-bit
state; nothing here blocks or raises once constructed.
"""

import hashlib
import math
import time
from typing import List, Sequence, TypeVar

from sim.errors import ConfigurationError


T = TypeVar("T")

UINT32_MASK = 0xFFFFFFFF
MULBERRY_INCREMENT = 0x6D2B79F5

# (face, probability) pairs; the tails carry 5% each and 9-12 carry 40%.
WEIGHTED_D20_TABLE = [
    (1, 0.05),
    (2, 0.025), (3, 0.025), (4, 0.025),
    (5, 0.0375), (6, 0.0375), (7, 0.0375), (8, 0.0375),
    (9, 0.10), (10, 0.10), (11, 0.10), (12, 0.10),
    (13, 0.05), (14, 0.05), (15, 0.05), (16, 0.05),
    (17, 0.025), (18, 0.025), (19, 0.025),
    (20, 0.05),
]


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply."""
    return (a * b) & UINT32_MASK


def validate_seed(seed) -> int:
    """Return seed as an int or raise ConfigurationError."""
    if isinstance(seed, bool) or not isinstance(seed, int):
        raise ConfigurationError(f"Seed must be an integer, got {seed!r}")
    if seed < 0 or seed > UINT32_MASK:
        raise ConfigurationError(f"Seed must fit in 32 bits, got {seed}")
    return seed


def time_seed() -> int:
    """Time-derived seed for unseeded runs."""
    return int(time.time() * 1000) & UINT32_MASK


class SeededRandom:
    """Reproducible random source with dice, picks and shuffles."""

    def __init__(self, seed: int = None):
        if seed is None:
            seed = time_seed()
        self._seed = validate_seed(seed)
        self._state = self._seed

    @property
    def seed(self) -> int:
        return self._seed

    def reset(self):
        """Restore the exact initial state."""
        self._state = self._seed

    def fork(self, label: str) -> "SeededRandom":
        """Independent source derived from this seed and a label."""
        digest = hashlib.sha256(f"{self._seed}:{label}".encode("utf-8")).digest()
        return SeededRandom(int.from_bytes(digest[:4], "big"))

    def _next_uint32(self) -> int:
        self._state = (self._state + MULBERRY_INCREMENT) & UINT32_MASK
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & UINT32_MASK
        return (t ^ (t >> 14)) & UINT32_MASK

    def random(self) -> float:
        """Uniform float in [0, 1)."""
        return self._next_uint32() / 4294967296.0

    def int(self, low: int, high: int) -> int:
        """Uniform integer in [low, high], both inclusive."""
        return math.floor(self.random() * (high - low + 1)) + low

    def d20(self) -> int:
        return self.int(1, 20)

    def weighted_d20(self) -> int:
        """Roll 1-20 under the bell-shaped game table."""
        r = self.random()
        cumulative = 0.0
        for face, weight in WEIGHTED_D20_TABLE:
            cumulative += weight
            if r < cumulative:
                return face
        return 20

    def pick(self, items: Sequence[T]) -> T:
        return items[self.int(0, len(items) - 1)]

    def shuffle(self, items: Sequence[T]) -> List[T]:
        """Fisher-Yates shuffle of a copy; the input is left untouched."""
        result = list(items)
        for i in range(len(result) - 1, 0, -1):
            j = self.int(0, i)
            result[i], result[j] = result[j], result[i]
        return result

    def chance(self, probability: float) -> bool:
        return self.random() < probability

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick proportionally to weights (they need not sum to 1)."""
        total = sum(weights)
        r = self.random() * total
        for item, weight in zip(items, weights):
            r -= weight
            if r <= 0:
                return item
        return items[-1]

    def normal(self, mean: float = 0.0, std_dev: float = 1.0) -> float:
        """Box-Muller normal sample."""
        u1 = 1.0 - self.random()
        u2 = self.random()
        z0 = math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)
        return z0 * std_dev + mean

    def sample(self, count: int) -> List[float]:
        """Next `count` uniform draws, handy for reproducibility checks."""
        return [self.random() for _ in range(count)]
