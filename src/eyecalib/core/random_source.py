from __future__ import annotations

from typing import Protocol

import numpy as np


class RandomSource(Protocol):
    """Uniform random draws used by the swarm (injectable for reproducible runs)."""

    def scalar(self, lo: float, hi: float) -> float: ...

    def vector(self, lo: np.ndarray, hi: np.ndarray) -> np.ndarray: ...


class NumpyRandomSource:
    """`RandomSource` backed by a private `np.random.Generator`."""

    def __init__(self, seed: int | None = None, *, generator: np.random.Generator | None = None) -> None:
        self.generator = generator if generator is not None else np.random.default_rng(seed)

    def scalar(self, lo: float, hi: float) -> float:
        return float(self.generator.uniform(float(lo), float(hi)))

    def vector(self, lo: np.ndarray, hi: np.ndarray) -> np.ndarray:
        lo = np.asarray(lo, dtype=np.float64)
        hi = np.asarray(hi, dtype=np.float64)
        return self.generator.uniform(lo, hi)
