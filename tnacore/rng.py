"""Seeded random number source shared by the resampling procedures."""

from __future__ import annotations

import numpy as np


class SeededRNG:
    """Deterministic random number source.

    Every resampling procedure in tnacore draws from one ``SeededRNG``,
    so a run is reproducible bit-for-bit from its seed.

    Parameters
    ----------
    seed : int, optional
        Seed passed to :func:`numpy.random.default_rng`.

    Examples
    --------
    >>> rng = SeededRNG(42)
    >>> rng.permutation(5)
    """

    def __init__(self, seed: int | None = None):
        self.seed = seed
        self._gen = np.random.default_rng(seed)

    def __repr__(self) -> str:
        return f"SeededRNG(seed={self.seed})"

    def uniform(self) -> float:
        """Draw one float from [0, 1)."""
        return float(self._gen.random())

    def permutation(self, n: int) -> np.ndarray:
        """Return a random permutation of ``0..n-1``."""
        return self._gen.permutation(n)

    def choice_without_replacement(self, n: int, k: int) -> np.ndarray:
        """Draw ``k`` distinct indices from ``0..n-1``."""
        if k > n:
            raise ValueError(f"Cannot draw {k} distinct indices from {n}")
        return self._gen.choice(n, size=k, replace=False)

    def choice(self, n: int, size: int) -> np.ndarray:
        """Draw ``size`` indices from ``0..n-1`` with replacement."""
        return self._gen.choice(n, size=size, replace=True)
