"""Case-dropping stability of centrality measures.

Sequences are dropped in increasing proportions, the network is rebuilt from
the remaining sequences and the sub-sample centralities are correlated with
those of the full model. The correlation-stability (CS) coefficient of a
measure is the largest drop proportion at which the correlation stays above
``threshold`` in at least a ``certainty`` share of the sub-samples.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from .centralities import AVAILABLE_MEASURES, centralities
from .model import create_tna
from .rng import SeededRNG
from .sequences import pad_sequences
from .transitions import compute_transitions_3d, compute_weights_from_3d

if TYPE_CHECKING:
    from .model import TNA
    from .tasks import CancellationToken

logger = logging.getLogger(__name__)


CORRELATION_METHODS = ['pearson', 'spearman']
DEFAULT_STABILITY_MEASURES = ('InStrength', 'OutStrength', 'Betweenness')
DEFAULT_DROP_PROPS = (0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9)


@dataclass
class StabilityResult:
    """Result of case-dropping stability estimation.

    Attributes
    ----------
    cs_coefficients : dict of str to float
        CS coefficient per measure, 0 when no drop proportion qualifies
    mean_correlations : dict of str to np.ndarray
        Mean correlation per measure, parallel to ``drop_props``. NaN where
        no sub-samples were drawn or the measure has no variance.
    drop_props : np.ndarray
        Drop proportions in the order they were evaluated
    threshold : float
        Minimum correlation counted as stable
    certainty : float
        Required share of stable sub-samples
    corr_method : str
        'pearson' or 'spearman'
    """

    cs_coefficients: dict[str, float]
    mean_correlations: dict[str, np.ndarray]
    drop_props: np.ndarray
    threshold: float = 0.7
    certainty: float = 0.95
    corr_method: str = "pearson"
    iter: int = field(default=500, repr=False)

    def summary(self) -> pd.DataFrame:
        """Mean correlations with drop proportions as rows, measures as columns."""
        df = pd.DataFrame(self.mean_correlations, index=self.drop_props)
        df.index.name = 'drop_prop'
        return df

    def cs_table(self) -> pd.Series:
        """CS coefficients as a Series indexed by measure."""
        return pd.Series(self.cs_coefficients, name='cs_coefficient')


def pearson_corr(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson correlation; NaN when either vector has zero spread."""
    x = np.asarray(x, dtype=float)
    y = np.asarray(y, dtype=float)
    if len(x) != len(y) or len(x) < 2:
        return float('nan')
    dx = x - x.mean()
    dy = y - y.mean()
    sxx = float(np.dot(dx, dx))
    syy = float(np.dot(dy, dy))
    if sxx == 0 or syy == 0:
        return float('nan')
    return float(np.dot(dx, dy) / np.sqrt(sxx * syy))


def spearman_corr(x: np.ndarray, y: np.ndarray) -> float:
    """Spearman correlation: Pearson on average ranks."""
    return pearson_corr(rankdata(x, method='average'), rankdata(y, method='average'))


def _has_variance(values: np.ndarray) -> bool:
    finite = values[np.isfinite(values)]
    return len(finite) == len(values) and len(finite) > 1 and float(np.var(finite)) > 0


def estimate_stability(
    model: 'TNA',
    measures: Sequence[str] = DEFAULT_STABILITY_MEASURES,
    iter: int = 500,
    drop_props: Sequence[float] = DEFAULT_DROP_PROPS,
    threshold: float = 0.7,
    certainty: float = 0.95,
    seed: int | None = 42,
    corr_method: str = "pearson",
    loops: bool = False,
    token: 'CancellationToken | None' = None,
) -> StabilityResult:
    """Estimate the stability of centrality measures under case dropping.

    Parameters
    ----------
    model : TNA
        Model built from sequence data
    measures : sequence of str
        Centrality measures to assess (see ``AVAILABLE_MEASURES``)
    iter : int
        Sub-samples per drop proportion (default: 500)
    drop_props : sequence of float
        Proportions of sequences to drop
    threshold : float
        Correlation threshold (default: 0.7)
    certainty : float
        Required share of sub-samples above ``threshold`` (default: 0.95)
    seed : int, optional
        Seed for :class:`SeededRNG`
    corr_method : str
        'pearson' or 'spearman'
    loops : bool
        Include self-loops in the centralities
    token : CancellationToken, optional
        Checked once per sub-sample

    Returns
    -------
    StabilityResult

    Notes
    -----
    A sub-sample whose correlation is undefined (for example a sub-network
    in which the measure is constant) is recorded as correlation 0: it lowers
    the mean and never counts as stable.

    Examples
    --------
    >>> res = tnacore.estimate_stability(model, iter=100)
    >>> res.cs_coefficients
    """
    if model.data is None:
        raise ValueError("TNA model must have sequence data for stability estimation")
    if corr_method not in CORRELATION_METHODS:
        raise ValueError(
            f"Unknown correlation method: {corr_method}. Available: {CORRELATION_METHODS}"
        )
    if iter < 1:
        raise ValueError(f"iter must be at least 1, got {iter}")
    measures = list(measures)
    invalid = set(measures) - set(AVAILABLE_MEASURES)
    if invalid:
        raise ValueError(f"Unknown measures: {invalid}. Available: {AVAILABLE_MEASURES}")

    if token is not None:
        token.raise_if_cancelled()

    corr = spearman_corr if corr_method == "spearman" else pearson_corr
    labels = list(model.labels)
    props = np.asarray(drop_props, dtype=float)
    scaling = model.scaling or None

    data = pad_sequences(list(model.data))
    n = len(data)
    trans = compute_transitions_3d(data, labels, type_=model.type_, params=model.params)

    orig = centralities(model, loops=loops, measures=measures)
    valid = [m for m in measures if _has_variance(orig[m].to_numpy(dtype=float))]
    skipped = [m for m in measures if m not in valid]
    if skipped:
        logger.warning("Measures without variance excluded from stability: %s", skipped)

    logger.info(
        "Stability estimation: %d sequences, measures=%s, iter=%d, corr=%s",
        n, valid, iter, corr_method,
    )

    rng = SeededRNG(seed)
    # corrs[m][k] holds the correlations recorded for drop_props[k]
    corrs: dict[str, list[list[float]]] = {m: [[] for _ in props] for m in valid}

    if valid:
        for k, prop in enumerate(props):
            n_drop = int(np.floor(n * prop))
            n_keep = n - n_drop
            if n_drop == 0 or n_keep < 2:
                logger.debug("Drop proportion %s skipped (n_drop=%d, n_keep=%d)",
                             prop, n_drop, n_keep)
                continue

            for _ in range(iter):
                if token is not None:
                    token.raise_if_cancelled()

                idx = rng.choice_without_replacement(n, n_keep)
                weights = compute_weights_from_3d(
                    trans[idx], type_=model.type_, scaling=scaling
                )
                sub = create_tna(
                    weights, model.inits, labels, type_=model.type_, scaling=model.scaling
                )
                sub_cent = centralities(sub, loops=loops, measures=valid)

                for m in valid:
                    c = corr(orig[m].to_numpy(dtype=float), sub_cent[m].to_numpy(dtype=float))
                    corrs[m][k].append(0.0 if np.isnan(c) else c)

    cs_coefficients: dict[str, float] = {}
    mean_correlations: dict[str, np.ndarray] = {}

    for m in measures:
        means = np.full(len(props), np.nan)
        cs = 0.0
        if m in valid:
            for k, prop in enumerate(props):
                recorded = corrs[m][k]
                if not recorded:
                    continue
                values = np.asarray(recorded)
                means[k] = values.mean()
                if np.mean(values >= threshold) >= certainty:
                    cs = float(prop)
        cs_coefficients[m] = cs
        mean_correlations[m] = means

    logger.info("CS coefficients: %s", cs_coefficients)

    return StabilityResult(
        cs_coefficients=cs_coefficients,
        mean_correlations=mean_correlations,
        drop_props=props,
        threshold=threshold,
        certainty=certainty,
        corr_method=corr_method,
        iter=iter,
    )


estimate_cs = estimate_stability
