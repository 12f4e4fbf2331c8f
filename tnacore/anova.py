"""Omnibus and pairwise comparison of a numeric metric across groups.

Parametric comparisons use one-way ANOVA followed by Welch t-tests;
non-parametric ones use Kruskal-Wallis followed by Mann-Whitney U tests
(normal approximation with tie correction). Pairwise p-values are adjusted
with :func:`tnacore.permutation.p_adjust`.
"""

from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Mapping, Sequence

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from .permutation import p_adjust
from .special import chi_square_cdf, f_distribution_cdf, normal_cdf, t_distribution_cdf

logger = logging.getLogger(__name__)


POST_HOC_ADJUST_METHODS = ['bonferroni', 'holm', 'fdr']


@dataclass(frozen=True)
class AnovaResult:
    """Omnibus test result.

    Attributes
    ----------
    statistic : float
        F (ANOVA) or tie-corrected H (Kruskal-Wallis)
    df1 : int
        Between-groups degrees of freedom, k - 1
    df2 : float
        Within-groups degrees of freedom N - k; NaN for Kruskal-Wallis
    p_value : float
        Upper tail probability of ``statistic``
    effect_size : float
        Eta squared (ANOVA) or epsilon squared (Kruskal-Wallis)
    effect_label : str
        'eta_sq' or 'epsilon_sq'
    method : str
        'anova' or 'kruskal'
    """

    statistic: float
    df1: int
    df2: float
    p_value: float
    effect_size: float
    effect_label: str
    method: str


@dataclass(frozen=True)
class PostHocResult:
    """One pairwise comparison; ``p_value`` is already adjusted."""

    group_a: str
    group_b: str
    statistic: float
    p_value: float
    significant: bool


@dataclass
class GroupComparisonResult:
    """Omnibus test and pairwise post-hoc tests for one metric."""

    metric: str
    omnibus: AnovaResult
    post_hoc: list[PostHocResult] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        """Post-hoc comparisons, one row per pair of groups."""
        return pd.DataFrame(
            [
                (r.group_a, r.group_b, r.statistic, r.p_value, r.significant)
                for r in self.post_hoc
            ],
            columns=['group_a', 'group_b', 'statistic', 'p_value', 'significant'],
        )


def _as_groups(groups: Mapping[str, Sequence[float]]) -> dict[str, np.ndarray]:
    out = {str(k): np.asarray(v, dtype=float) for k, v in groups.items()}
    if len(out) < 2:
        raise ValueError("At least two groups are required for a group comparison")
    empty = [k for k, v in out.items() if len(v) == 0]
    if empty:
        raise ValueError(f"Groups without values: {empty}")
    return out


def _tie_term(values: np.ndarray) -> float:
    """Sum of t^3 - t over runs of tied values."""
    _, counts = np.unique(values, return_counts=True)
    counts = counts.astype(float)
    return float(np.sum(counts ** 3 - counts))


def one_way_anova(groups: Mapping[str, Sequence[float]]) -> AnovaResult:
    """One-way ANOVA F-test.

    Parameters
    ----------
    groups : mapping of str to sequence of float
        Values per group, in comparison order

    Returns
    -------
    AnovaResult
        ``statistic`` is 0 when the within-group mean square is 0, and
        ``p_value`` is 1 when there are no within-group degrees of freedom.
    """
    data = _as_groups(groups)
    k = len(data)
    n_total = sum(len(v) for v in data.values())
    grand_mean = np.concatenate(list(data.values())).mean()

    ss_between = 0.0
    ss_within = 0.0
    for values in data.values():
        mean = values.mean()
        ss_between += len(values) * (mean - grand_mean) ** 2
        ss_within += float(np.sum((values - mean) ** 2))

    df1 = k - 1
    df2 = n_total - k
    ms_between = ss_between / df1
    ms_within = ss_within / df2 if df2 > 0 else 0.0
    f_stat = ms_between / ms_within if ms_within > 0 else 0.0
    p_value = 1.0 - f_distribution_cdf(f_stat, df1, df2) if df2 > 0 else 1.0

    ss_total = ss_between + ss_within
    eta_sq = ss_between / ss_total if ss_total > 0 else 0.0

    return AnovaResult(
        statistic=float(f_stat),
        df1=df1,
        df2=df2,
        p_value=float(p_value),
        effect_size=float(eta_sq),
        effect_label='eta_sq',
        method='anova',
    )


def kruskal_wallis(groups: Mapping[str, Sequence[float]]) -> AnovaResult:
    """Kruskal-Wallis H test with tie correction.

    Average ranks are used for ties; the p-value comes from the chi-square
    distribution with k - 1 degrees of freedom.
    """
    data = _as_groups(groups)
    k = len(data)
    pooled = np.concatenate(list(data.values()))
    n_total = len(pooled)
    ranks = rankdata(pooled, method='average')

    sum_term = 0.0
    start = 0
    for values in data.values():
        group_ranks = ranks[start:start + len(values)]
        sum_term += group_ranks.sum() ** 2 / len(values)
        start += len(values)

    h = 12.0 / (n_total * (n_total + 1)) * sum_term - 3 * (n_total + 1)
    correction = 1 - _tie_term(pooled) / (n_total ** 3 - n_total)
    if correction > 0:
        h /= correction

    df1 = k - 1
    p_value = 1.0 - chi_square_cdf(h, df1)
    epsilon_sq = (h - k + 1) / (n_total - k) if n_total > k else 0.0

    return AnovaResult(
        statistic=float(h),
        df1=df1,
        df2=math.nan,
        p_value=float(p_value),
        effect_size=float(max(0.0, epsilon_sq)),
        effect_label='epsilon_sq',
        method='kruskal',
    )


def welch_t_test(a: Sequence[float], b: Sequence[float]) -> tuple[float, float, float]:
    """Welch's two-sample t-test.

    Returns
    -------
    tuple of float
        ``(t, df, p_value)`` with a two-tailed p-value. Groups with no
        spread give ``t = 0`` and ``p_value = 1``.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    n1, n2 = len(a), len(b)
    v1 = float(np.sum((a - a.mean()) ** 2)) / max(n1 - 1, 1)
    v2 = float(np.sum((b - b.mean()) ** 2)) / max(n2 - 1, 1)

    se = math.sqrt(v1 / n1 + v2 / n2)
    if se == 0:
        return 0.0, float(max(n1 + n2 - 2, 1)), 1.0

    t = (a.mean() - b.mean()) / se
    # Welch-Satterthwaite
    num = (v1 / n1 + v2 / n2) ** 2
    den = (v1 / n1) ** 2 / max(n1 - 1, 1) + (v2 / n2) ** 2 / max(n2 - 1, 1)
    df = num / den if den > 0 else 1.0

    p_value = 2 * (1 - t_distribution_cdf(abs(t), df))
    return float(t), float(df), float(p_value)


def mann_whitney_u(a: Sequence[float], b: Sequence[float]) -> tuple[float, float]:
    """Mann-Whitney U test, normal approximation with tie correction.

    Returns
    -------
    tuple of float
        ``(U, p_value)`` where ``U = min(U1, U2)`` and the p-value is
        two-tailed, capped at 1.
    """
    a = np.asarray(a, dtype=float)
    b = np.asarray(b, dtype=float)
    n1, n2 = len(a), len(b)
    n_total = n1 + n2
    pooled = np.concatenate([a, b])
    ranks = rankdata(pooled, method='average')

    u1 = ranks[:n1].sum() - n1 * (n1 + 1) / 2
    u = min(u1, n1 * n2 - u1)

    mu = n1 * n2 / 2
    sigma = math.sqrt(
        (n1 * n2 / 12) * ((n_total + 1) - _tie_term(pooled) / (n_total * (n_total - 1)))
    )
    if sigma == 0:
        return float(u), 1.0

    z = (u - mu) / sigma
    return float(u), float(min(2 * normal_cdf(z), 1.0))


def post_hoc_pairwise(
    groups: Mapping[str, Sequence[float]],
    parametric: bool = True,
    adjust: str = "bonferroni",
    level: float = 0.05,
) -> list[PostHocResult]:
    """Pairwise tests between all groups, in group order.

    Parameters
    ----------
    groups : mapping of str to sequence of float
        Values per group
    parametric : bool
        Welch t-test if True, Mann-Whitney U otherwise
    adjust : str
        'bonferroni', 'holm' or 'fdr'
    level : float
        Significance level for the adjusted p-values

    Returns
    -------
    list of PostHocResult
        Pairs ``(g1, g2), (g1, g3), ..., (g2, g3), ...``
    """
    if adjust not in POST_HOC_ADJUST_METHODS:
        raise ValueError(f"Unknown adjust method: {adjust}. Available: {POST_HOC_ADJUST_METHODS}")
    data = _as_groups(groups)

    pairs = list(itertools.combinations(data, 2))
    stats = []
    raw = []
    for name_a, name_b in pairs:
        if parametric:
            stat, _, p = welch_t_test(data[name_a], data[name_b])
        else:
            stat, p = mann_whitney_u(data[name_a], data[name_b])
        stats.append(stat)
        raw.append(p)

    adjusted = p_adjust(np.asarray(raw), method=adjust)
    return [
        PostHocResult(
            group_a=name_a,
            group_b=name_b,
            statistic=stat,
            p_value=float(p),
            significant=bool(p < level),
        )
        for (name_a, name_b), stat, p in zip(pairs, stats, adjusted)
    ]


def compare_groups(
    groups: Mapping[str, Sequence[float]],
    metric: str = "value",
    parametric: bool = True,
    adjust: str = "bonferroni",
    level: float = 0.05,
) -> GroupComparisonResult:
    """Omnibus test plus pairwise post-hoc tests for one metric.

    Examples
    --------
    >>> res = tnacore.compare_groups({"A": a, "B": b, "C": c}, metric="density")
    >>> res.omnibus.p_value
    >>> res.to_dataframe()
    """
    omnibus = one_way_anova(groups) if parametric else kruskal_wallis(groups)
    post_hoc = post_hoc_pairwise(groups, parametric=parametric, adjust=adjust, level=level)
    logger.debug(
        "Group comparison of %s: %s statistic=%.4g, p=%.4g",
        metric, omnibus.method, omnibus.statistic, omnibus.p_value,
    )
    return GroupComparisonResult(metric=metric, omnibus=omnibus, post_hoc=post_hoc)
