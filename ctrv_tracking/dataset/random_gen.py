"""
Shared random number generator for the scenario simulators.

Usage:
    from ctrv_tracking.dataset.random_gen import random_generator

    random_generator.reseed(42)
    rng = random_generator.get_rng()
    value = rng.normal(0.0, 1.0)
"""

from typing import Optional

import numpy as np


class RandomGeneratorSingleton:
    """Holds one numpy Generator so simulated scenarios are reproducible from a single seed"""

    def __init__(self, seed: Optional[int] = 42):
        self._seed = seed
        self._rng = np.random.default_rng(self._seed)

    def get_rng(self) -> np.random.Generator:
        return self._rng

    def get_seed(self) -> Optional[int]:
        return self._seed

    def reseed(self, seed: Optional[int]):
        self._seed = seed
        self.reinitialize()

    def reinitialize(self):
        self._rng = np.random.default_rng(self._seed)


random_generator = RandomGeneratorSingleton()
