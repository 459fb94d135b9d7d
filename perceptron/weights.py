"""
weights.py
~~~~~~~~~~

Sources of initial connection weights.

A network draws exactly one weight per connection, in the order the
connections are created. Fresh networks take their weights from a seeded
random source; restored networks are handed the saved weights up front.
"""

from collections import deque
from typing import Iterable, Optional

import numpy as np


# Fresh weights are drawn from uniform(0, 0.3) and shifted to a mean of zero
INITIAL_WEIGHT_RANGE = 0.3


class RandomSource:
    """Seeded provider of uniform floats backed by a numpy Generator."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._rng = np.random.default_rng(seed)

    def next_uniform_float(self, low: float, high: float) -> float:
        """Return the next float drawn uniformly from ``[low, high)``."""
        return float(self._rng.uniform(low, high))


class WeightSupplier:
    """
    Hands out initial weights for new connections.

    Predefined weights are consumed first, in the order they were given.
    Once they run out, weights are sampled from the random source.
    """

    def __init__(
        self,
        random_source: RandomSource,
        predefined: Optional[Iterable[float]] = None
    ):
        self.random_source = random_source
        self._predefined = deque(float(w) for w in (predefined or ()))

    @property
    def remaining_predefined(self) -> int:
        """Number of predefined weights not yet consumed."""
        return len(self._predefined)

    def next_weight(self) -> float:
        """
        Return the initial weight for the next connection.

        Returns:
            float: A predefined weight, or a random one with a mean of zero
        """
        if self._predefined:
            return self._predefined.popleft()
        return (
            self.random_source.next_uniform_float(0.0, INITIAL_WEIGHT_RANGE)
            - INITIAL_WEIGHT_RANGE / 2
        )
