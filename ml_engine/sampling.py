"""Deterministic randomness and train/test splitting."""

import math
from typing import List, Sequence, Tuple, TypeVar

import numpy as np
import pandas as pd


T = TypeVar('T')


class LinearCongruentialGenerator:
    """Seeded LCG (Numerical Recipes constants) threaded through bootstrap and
    feature sampling instead of a global RNG."""

    MODULUS = 2 ** 32
    MULTIPLIER = 1664525
    INCREMENT = 1013904223

    def __init__(self, seed: int):
        self.seed = seed
        self._state = seed % self.MODULUS

    def random(self) -> float:
        """Next float in [0, 1)."""
        self._state = (self.MULTIPLIER * self._state + self.INCREMENT) % self.MODULUS
        return self._state / self.MODULUS

    def randint(self, upper: int) -> int:
        """Next integer in [0, upper)."""
        return min(upper - 1, int(self.random() * upper))

    def sample(self, population: Sequence[T], k: int) -> List[T]:
        """Draw ``k`` distinct items via a partial Fisher-Yates shuffle."""
        pool = list(population)
        k = max(0, min(k, len(pool)))
        for i in range(k):
            j = i + self.randint(len(pool) - i)
            pool[i], pool[j] = pool[j], pool[i]
        return pool[:k]


def split_data(frame: pd.DataFrame, split_ratio: float) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Order rows by the sum of their values and cut at ``split_ratio``.

    Repeatable and data-dependent; no entropy is involved. Equal sums keep their
    original relative order.
    """
    train_size = int(math.floor(len(frame) * split_ratio))
    row_sums = frame.to_numpy(dtype=float).sum(axis=1) if len(frame.columns) else np.zeros(len(frame))
    order = np.argsort(row_sums, kind='stable')
    shuffled = frame.iloc[order]
    return shuffled.iloc[:train_size], shuffled.iloc[train_size:]
