"""Edge bootstrap for TNA models.

Sequences are resampled with replacement and the weight matrix rebuilt from
the cached per-sequence transition tensor. An edge is considered stable when
its bootstrapped weight rarely leaves a consistency range around the
original weight (``method="stability"``) or rarely falls below a threshold
(``method="threshold"``).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .model import TNA, create_tna
from .rng import SeededRNG
from .sequences import pad_sequences
from .transitions import compute_transitions_3d, compute_weights_from_3d

if TYPE_CHECKING:
    from .tasks import CancellationToken

logger = logging.getLogger(__name__)


BOOTSTRAP_METHODS = ['stability', 'threshold']


@dataclass
class BootstrapResult:
    """Result of an edge bootstrap.

    Attributes
    ----------
    weights_orig : np.ndarray
        Weight matrix rebuilt from all sequences
    weights_sig : np.ndarray
        ``weights_orig`` where p < level, else 0
    weights_mean : np.ndarray
        Mean of the bootstrap weight matrices
    weights_sd : np.ndarray
        Standard deviation of the bootstrap weight matrices (ddof=1)
    p_values : np.ndarray
        Edge p-values, (count + 1) / (iter + 1)
    cr_lower, cr_upper : np.ndarray
        Consistency range around ``weights_orig``
    ci_lower, ci_upper : np.ndarray
        Percentile interval at ``level / 2`` and ``1 - level / 2``
    boot_summary : pd.DataFrame
        Non-zero edges in column-major order with their statistics
    model : TNA
        Copy of the model keeping only significant edges
    labels : list of str
        State labels
    method : str
        'stability' or 'threshold'
    iter : int
        Number of bootstrap samples
    level : float
        Significance level
    """

    weights_orig: np.ndarray
    weights_sig: np.ndarray
    weights_mean: np.ndarray
    weights_sd: np.ndarray
    p_values: np.ndarray
    cr_lower: np.ndarray
    cr_upper: np.ndarray
    ci_lower: np.ndarray
    ci_upper: np.ndarray
    boot_summary: pd.DataFrame
    model: TNA
    labels: list[str]
    method: str = "stability"
    iter: int = 1000
    level: float = 0.05

    def __repr__(self) -> str:
        return (
            f"BootstrapResult(method={self.method!r}, iter={self.iter}, "
            f"significant={len(self.significant_edges())})"
        )

    def summary(self) -> pd.DataFrame:
        return self.boot_summary

    def significant_edges(self) -> list[tuple[str, str, float]]:
        """(from, to, weight) for every edge with p < level."""
        rows, cols = np.nonzero(self.weights_sig)
        return [
            (self.labels[i], self.labels[j], float(self.weights_orig[i, j]))
            for i, j in zip(rows.tolist(), cols.tolist())
        ]


def order_statistic(values: np.ndarray, q: float, axis: int = 0) -> np.ndarray:
    """Sorted value at index ``floor(len * q)`` along ``axis``, no interpolation."""
    values = np.sort(np.asarray(values, dtype=float), axis=axis)
    size = values.shape[axis]
    idx = min(int(np.floor(size * q)), size - 1)
    return np.take(values, idx, axis=axis)


def bootstrap_tna(
    model: TNA,
    iter: int = 1000,
    level: float = 0.05,
    method: str = "stability",
    threshold: float | None = None,
    consistency_range: tuple[float, float] = (0.75, 1.25),
    seed: int | None = 42,
    token: 'CancellationToken | None' = None,
) -> BootstrapResult:
    """Bootstrap the edges of a TNA model.

    Parameters
    ----------
    model : TNA
        Model built from sequence data
    iter : int
        Number of bootstrap samples (default: 1000)
    level : float
        Significance level (default: 0.05)
    method : str
        'stability' or 'threshold'
    threshold : float, optional
        For the threshold method. Defaults to the 10th percentile of the
        weights.
    consistency_range : tuple of float
        For the stability method: (lower, upper) multipliers of the
        original weight
    seed : int, optional
        Seed for :class:`SeededRNG`
    token : CancellationToken, optional
        Checked once per bootstrap sample

    Returns
    -------
    BootstrapResult

    Examples
    --------
    >>> boot = tnacore.bootstrap_tna(model, iter=500, seed=42)
    >>> boot.summary()
    """
    if model.data is None:
        raise ValueError("TNA model must have sequence data for bootstrap")
    if method not in BOOTSTRAP_METHODS:
        raise ValueError(f"Unknown method: {method}. Use 'stability' or 'threshold'.")
    if iter < 1:
        raise ValueError(f"iter must be at least 1, got {iter}")

    labels = list(model.labels)
    model_type = model.type_
    model_scaling = model.scaling or None

    seq_data = pad_sequences(list(model.data))
    n = len(seq_data)
    a = len(labels)

    trans = compute_transitions_3d(seq_data, labels, type_=model_type, params=model.params)
    weights = compute_weights_from_3d(trans, type_=model_type, scaling=model_scaling)

    if threshold is None:
        threshold = float(order_statistic(weights.ravel(), 0.1))

    logger.info(
        "Bootstrap: %d sequences, %d states, iter=%d, method=%s",
        n, a, iter, method,
    )

    rng = SeededRNG(seed)
    weights_boot = np.zeros((iter, a, a))
    counts = np.zeros((a, a))

    for i in range(iter):
        if token is not None:
            token.raise_if_cancelled()

        boot_idx = rng.choice(n, size=n)
        weights_boot[i] = compute_weights_from_3d(
            trans[boot_idx], type_=model_type, scaling=model_scaling
        )
        if method == "stability":
            counts += (weights_boot[i] <= weights * consistency_range[0])
            counts += (weights_boot[i] >= weights * consistency_range[1])
        else:
            counts += (weights_boot[i] < threshold)

    p_values = (counts + 1) / (iter + 1)

    weights_mean = weights_boot.mean(axis=0)
    weights_sd = weights_boot.std(axis=0, ddof=1) if iter > 1 else np.zeros((a, a))
    ci_lower = order_statistic(weights_boot, level / 2, axis=0)
    ci_upper = order_statistic(weights_boot, 1 - level / 2, axis=0)

    weights_sig = np.where(p_values < level, weights, 0.0)
    cr_lower = weights * consistency_range[0]
    cr_upper = weights * consistency_range[1]

    summary = pd.DataFrame({
        'from': labels * a,
        'to': [lab for lab in labels for _ in range(a)],
        'weight': weights.flatten(order='F'),
        'p_value': p_values.flatten(order='F'),
        'sig': (p_values < level).flatten(order='F'),
        'cr_lower': cr_lower.flatten(order='F'),
        'cr_upper': cr_upper.flatten(order='F'),
        'ci_lower': ci_lower.flatten(order='F'),
        'ci_upper': ci_upper.flatten(order='F'),
    })
    summary = summary[summary['weight'] > 0].reset_index(drop=True)

    pruned = create_tna(
        weights_sig, model.inits.copy(), labels, data=model.data,
        type_=model_type, scaling=model.scaling, params=model.params,
    )

    logger.info(
        "Bootstrap finished: %d of %d non-zero edges significant",
        int(summary['sig'].sum()), len(summary),
    )

    return BootstrapResult(
        weights_orig=weights,
        weights_sig=weights_sig,
        weights_mean=weights_mean,
        weights_sd=weights_sd,
        p_values=p_values,
        cr_lower=cr_lower,
        cr_upper=cr_upper,
        ci_lower=ci_lower,
        ci_upper=ci_upper,
        boot_summary=summary,
        model=pruned,
        labels=labels,
        method=method,
        iter=iter,
        level=level,
    )
