"""Pearson chi-square test and standardized residuals for transition tables."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
import pandas as pd

from .special import chi_square_cdf

if TYPE_CHECKING:
    from .model import TNA


@dataclass(frozen=True)
class ChiSquareResult:
    """Pearson chi-square test of independence.

    Attributes
    ----------
    chi_sq : float
        Test statistic
    df : int
        Degrees of freedom, (rows - 1) * (cols - 1)
    p_value : float
        Upper tail probability of ``chi_sq``
    std_residuals : np.ndarray
        Adjusted standardized residual per cell
    """

    chi_sq: float
    df: int
    p_value: float
    std_residuals: np.ndarray


def _standardized_residuals(tab: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    """Expected counts and adjusted residuals of a table with positive total."""
    total = tab.sum()
    row_p = tab.sum(axis=1) / total
    col_p = tab.sum(axis=0) / total
    expected = np.outer(row_p, col_p) * total
    denom = np.sqrt(expected * np.outer(1 - row_p, 1 - col_p))
    with np.errstate(divide='ignore', invalid='ignore'):
        res = np.where(denom > 1e-12, (tab - expected) / denom, 0.0)
    return expected, res


def chi_square_test(table) -> ChiSquareResult:
    """Pearson chi-square test on an r x c contingency table.

    Cells with zero expected count are left out of the statistic. An empty
    table gives ``chi_sq = 0``, ``df = 0`` and ``p_value = 1``.

    Parameters
    ----------
    table : array-like or pd.DataFrame
        Non-negative counts

    Returns
    -------
    ChiSquareResult
    """
    tab = np.asarray(table, dtype=float)
    if tab.ndim != 2:
        raise ValueError(f"Contingency table must be 2-dimensional, got shape {tab.shape}")

    if tab.size == 0 or tab.sum() == 0:
        return ChiSquareResult(chi_sq=0.0, df=0, p_value=1.0, std_residuals=np.zeros(tab.shape))

    expected, std_res = _standardized_residuals(tab)
    pos = expected > 0
    chi_sq = float(np.sum((tab[pos] - expected[pos]) ** 2 / expected[pos]))

    n_rows, n_cols = tab.shape
    df = (n_rows - 1) * (n_cols - 1)
    p_value = 1.0 - chi_square_cdf(chi_sq, df) if df > 0 else 1.0

    return ChiSquareResult(chi_sq=chi_sq, df=df, p_value=p_value, std_residuals=std_res)


def transition_residuals(model: 'TNA') -> pd.DataFrame:
    """Standardized residuals of the model's weights as a contingency table.

    Negative weights are clipped to zero. Rows are source states, columns
    target states.
    """
    tab = np.maximum(np.asarray(model.weights, dtype=float), 0.0)
    res = chi_square_test(tab).std_residuals
    return pd.DataFrame(res, index=model.labels, columns=model.labels)
