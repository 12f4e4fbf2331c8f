"""Permutation test for comparing two TNA models edge by edge.

Sequences of both groups are pooled and their per-sequence transition
tensor is computed once. Each permutation reassigns sequences to groups of
the original sizes, rebuilds both weight matrices from the cached tensor and
compares the permuted difference with the observed one.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .rng import SeededRNG
from .sequences import pad_sequences
from .transitions import compute_transitions_3d, compute_weights_from_3d

if TYPE_CHECKING:
    from .group import GroupTNA
    from .model import TNA
    from .tasks import CancellationToken

logger = logging.getLogger(__name__)


ADJUST_METHODS = ['none', 'bonferroni', 'holm', 'fdr', 'BH']


@dataclass
class PermutationResult:
    """Result of an edge-wise permutation test.

    Attributes
    ----------
    edge_stats : pd.DataFrame
        One row per edge in column-major order (all sources of the first
        target state, then the next target), with columns
        ``from, to, diff_true, effect_size, p_value``
    diff_true : np.ndarray
        Observed weight differences ``x - y``, flattened row-major (n*n,)
    diff_sig : np.ndarray
        ``diff_true`` where the adjusted p-value is below ``level``, else 0
    p_values : np.ndarray
        Adjusted p-values, flattened row-major (n*n,)
    labels : list of str
        State labels
    n_states : int
        Number of states
    level : float
        Significance level
    adjust : str
        P-value adjustment method
    iter : int
        Number of permutations
    """

    edge_stats: pd.DataFrame
    diff_true: np.ndarray
    diff_sig: np.ndarray
    p_values: np.ndarray
    labels: list[str] = field(default_factory=list)
    n_states: int = 0
    level: float = 0.05
    adjust: str = "none"
    iter: int = 1000

    def __repr__(self) -> str:
        n_sig = int(np.sum(self.p_values < self.level))
        return (
            f"PermutationResult(states={self.n_states}, iter={self.iter}, "
            f"adjust={self.adjust!r}, significant={n_sig})"
        )

    def as_matrix(self, name: str = "diff_true") -> pd.DataFrame:
        """Reshape ``diff_true``, ``diff_sig`` or ``p_values`` to a labeled matrix."""
        if name not in ("diff_true", "diff_sig", "p_values"):
            raise ValueError(f"Unknown result matrix: {name}")
        values = getattr(self, name).reshape(self.n_states, self.n_states)
        return pd.DataFrame(values, index=self.labels, columns=self.labels)

    def significant_edges(self) -> pd.DataFrame:
        """Edge statistics for edges with adjusted p-value below ``level``."""
        stats = self.edge_stats
        return stats[stats['p_value'] < self.level].reset_index(drop=True)


def p_adjust(p_values: np.ndarray, method: str = "none") -> np.ndarray:
    """Adjust p-values for multiple testing, as R's ``p.adjust``.

    Parameters
    ----------
    p_values : np.ndarray
        Array of p-values
    method : str
        'none', 'bonferroni', 'holm', or 'fdr'/'BH' (Benjamini-Hochberg)

    Returns
    -------
    np.ndarray
        Adjusted p-values in the input order
    """
    p = np.asarray(p_values, dtype=float)
    n = len(p)

    if method not in ADJUST_METHODS:
        raise ValueError(f"Unknown p.adjust method: {method}. Available: {ADJUST_METHODS}")
    if method == "none" or n <= 1:
        return p.copy()

    if method == "bonferroni":
        return np.minimum(p * n, 1.0)

    order = np.argsort(p, kind='stable')
    adjusted = np.zeros(n)

    if method == "holm":
        cummax = 0.0
        for rank, idx in enumerate(order):
            cummax = max(cummax, p[idx] * (n - rank))
            adjusted[idx] = min(cummax, 1.0)
        return adjusted

    # fdr / BH: running minimum from the largest p-value down
    cummin = 1.0
    for rank in range(n - 1, -1, -1):
        idx = order[rank]
        cummin = min(cummin, p[idx] * n / (rank + 1))
        adjusted[idx] = min(cummin, 1.0)
    return adjusted


def _check_comparable(x: 'TNA', y: 'TNA') -> None:
    if x.data is None or y.data is None:
        raise ValueError("Both TNA models must have sequence data for permutation test")
    if len(x.labels) != len(y.labels) or any(a != b for a, b in zip(x.labels, y.labels)):
        raise ValueError("Both models must have the same state labels in the same order")


def permutation_test(
    x: 'TNA',
    y: 'TNA',
    iter: int = 1000,
    adjust: str = "none",
    level: float = 0.05,
    seed: int | None = 42,
    paired: bool = False,
    token: 'CancellationToken | None' = None,
) -> PermutationResult:
    """Permutation test for comparing two TNA models.

    Tests every edge for a difference in weight between the two groups.
    The observed difference is taken from the models' weights; the null
    distribution comes from reassigning whole sequences between groups.

    Parameters
    ----------
    x : TNA
        First group's model (must have sequence data)
    y : TNA
        Second group's model (must have sequence data and the same labels)
    iter : int
        Number of permutations (default: 1000)
    adjust : str
        P-value adjustment: 'none', 'bonferroni', 'holm', 'fdr'/'BH'
    level : float
        Significance level (default: 0.05)
    seed : int, optional
        Seed for :class:`SeededRNG`
    paired : bool
        Swap sequence ``k`` of x with sequence ``k`` of y with probability
        0.5 instead of shuffling all sequences. Requires equal group sizes.
    token : CancellationToken, optional
        Checked once per permutation

    Returns
    -------
    PermutationResult

    Examples
    --------
    >>> result = tnacore.permutation_test(model1, model2, iter=500, seed=42)
    >>> result.edge_stats
    """
    _check_comparable(x, y)
    if iter < 1:
        raise ValueError(f"iter must be at least 1, got {iter}")
    if adjust not in ADJUST_METHODS:
        raise ValueError(f"Unknown p.adjust method: {adjust}. Available: {ADJUST_METHODS}")

    labels = list(x.labels)
    a = len(labels)
    n_x = len(x.data)
    n_y = len(y.data)
    n_xy = n_x + n_y

    if paired and n_x != n_y:
        raise ValueError("Paired permutation test requires equal group sizes")

    model_type = x.type_
    model_scaling = x.scaling or None

    logger.info(
        "Permutation test: %d states, %d + %d sequences, iter=%d, adjust=%s, paired=%s",
        a, n_x, n_y, iter, adjust, paired,
    )

    # Pooled sequences padded to a common width so that every transition of
    # the longer group is kept.
    combined = pad_sequences(list(x.data) + list(y.data))
    combined_trans = compute_transitions_3d(
        combined, labels, type_=model_type, params=x.params
    )

    diff_true = np.asarray(x.weights, dtype=float) - np.asarray(y.weights, dtype=float)
    diff_true_abs = np.abs(diff_true)

    rng = SeededRNG(seed)

    exceed = np.zeros((a, a))
    diff_sum = np.zeros((a, a))
    diff_sq_sum = np.zeros((a, a))

    for _ in range(iter):
        if token is not None:
            token.raise_if_cancelled()

        if paired:
            perm_idx = np.arange(n_xy)
            for p in range(n_x):
                if rng.uniform() < 0.5:
                    perm_idx[p], perm_idx[n_x + p] = perm_idx[n_x + p], perm_idx[p]
        else:
            perm_idx = rng.permutation(n_xy)

        weights_perm_x = compute_weights_from_3d(
            combined_trans[perm_idx[:n_x]], type_=model_type, scaling=model_scaling
        )
        weights_perm_y = compute_weights_from_3d(
            combined_trans[perm_idx[n_x:]], type_=model_type, scaling=model_scaling
        )

        diff_perm = weights_perm_x - weights_perm_y
        diff_sum += diff_perm
        diff_sq_sum += diff_perm * diff_perm
        exceed += np.abs(diff_perm) >= diff_true_abs

    # P-values: (count + 1) / (iter + 1), adjusted over the column-major
    # flattening to match R's ordering of edges
    p_raw = (exceed + 1) / (iter + 1)
    p_adj = p_adjust(p_raw.flatten(order='F'), method=adjust).reshape((a, a), order='F')

    # Effect sizes: diff_true / sd(perm_diffs), Bessel corrected
    mean = diff_sum / iter
    variance = np.maximum(diff_sq_sum / iter - mean * mean, 0.0)
    sd = np.sqrt(variance * iter / (iter - 1)) if iter > 1 else np.zeros((a, a))
    with np.errstate(divide='ignore', invalid='ignore'):
        effect_size = np.where(sd > 0, diff_true / sd, np.nan)

    diff_sig = np.where(p_adj < level, diff_true, 0.0)

    edge_stats = pd.DataFrame({
        'from': labels * a,
        'to': [lab for lab in labels for _ in range(a)],
        'diff_true': diff_true.flatten(order='F'),
        'effect_size': effect_size.flatten(order='F'),
        'p_value': p_adj.flatten(order='F'),
    })

    logger.info(
        "Permutation test finished: %d of %d edges significant at level %s",
        int(np.sum(p_adj < level)), a * a, level,
    )

    return PermutationResult(
        edge_stats=edge_stats,
        diff_true=diff_true.flatten(),
        diff_sig=diff_sig.flatten(),
        p_values=p_adj.flatten(),
        labels=labels,
        n_states=a,
        level=level,
        adjust=adjust,
        iter=iter,
    )


def group_permutation_test(
    group: 'GroupTNA',
    **kwargs,
) -> dict[str, PermutationResult]:
    """Run :func:`permutation_test` for every pair of groups.

    Pairs follow the group order, so groups ``A, B, C`` give
    ``"A vs. B"``, ``"A vs. C"`` and ``"B vs. C"``.

    Parameters
    ----------
    group : GroupTNA
        Grouped models sharing one state space
    **kwargs
        Forwarded to :func:`permutation_test`

    Returns
    -------
    dict of str to PermutationResult
    """
    if len(group) < 2:
        raise ValueError("At least two groups are required for a permutation test")
    return {
        f"{a} vs. {b}": permutation_test(group[a], group[b], **kwargs)
        for a, b in itertools.combinations(group.names(), 2)
    }
