"""Helper functions for the tnacore package."""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy.stats import rankdata


SCALING_METHODS = ['minmax', 'max', 'rank']


def ensure_matrix(x: np.ndarray | pd.DataFrame) -> np.ndarray:
    """Convert input to numpy array if needed."""
    if isinstance(x, pd.DataFrame):
        return x.values
    return np.asarray(x)


def is_na(val) -> bool:
    """Check if a sequence token is missing (None, NaN or pandas NA)."""
    if val is None:
        return True
    if isinstance(val, float) and np.isnan(val):
        return True
    try:
        return bool(pd.isna(val))
    except (TypeError, ValueError):
        return False


def row_normalize(mat: np.ndarray) -> np.ndarray:
    """Normalize matrix rows to sum to 1 (transition probabilities).

    Rows summing to zero are left as zeros.
    """
    row_sums = mat.sum(axis=1, keepdims=True)
    row_sums = np.where(row_sums == 0, 1, row_sums)
    return mat / row_sums


def minmax_scale(mat: np.ndarray) -> np.ndarray:
    """Min-max normalization to [0, 1]."""
    lo, hi = mat.min(), mat.max()
    if hi == lo:
        return np.zeros_like(mat, dtype=float)
    return (mat - lo) / (hi - lo)


def max_scale(mat: np.ndarray) -> np.ndarray:
    """Divide by maximum value."""
    hi = mat.max()
    if hi == 0:
        return mat.astype(float)
    return mat / hi


def rank_scale(mat: np.ndarray) -> np.ndarray:
    """Replace weights by their average ranks; zero weights stay zero."""
    flat = mat.flatten()
    ranks = rankdata(flat, method='average')
    ranks[flat == 0] = 0
    return ranks.reshape(mat.shape)


def apply_scaling(
    mat: np.ndarray,
    scaling: str | list[str] | None,
) -> tuple[np.ndarray, list[str]]:
    """Apply scaling method(s) to a weight matrix, in order.

    Parameters
    ----------
    mat : np.ndarray
        Input matrix
    scaling : str or list of str, optional
        Scaling method(s): 'minmax', 'max', 'rank', or None

    Returns
    -------
    tuple
        (scaled_matrix, list_of_applied_scalings)
    """
    result = np.array(mat, dtype=float)
    if not scaling:
        return result, []

    if isinstance(scaling, str):
        scaling = [scaling]

    applied = []
    for method in scaling:
        method = method.lower()
        if method == 'minmax':
            result = minmax_scale(result)
        elif method == 'max':
            result = max_scale(result)
        elif method == 'rank':
            result = rank_scale(result)
        else:
            raise ValueError(
                f"Unknown scaling method: {method}. Available: {SCALING_METHODS}"
            )
        applied.append(method)

    return result, applied


def is_square_matrix(x: np.ndarray) -> bool:
    """Check if array is a square matrix."""
    return x.ndim == 2 and x.shape[0] == x.shape[1]


def is_weight_matrix(x) -> bool:
    """Check if input is a numeric square matrix rather than sequence data."""
    if isinstance(x, pd.DataFrame):
        if not all(pd.api.types.is_numeric_dtype(dt) for dt in x.dtypes):
            return False
        arr = x.values
    else:
        try:
            arr = np.asarray(x)
        except ValueError:
            # Ragged nested lists are always sequences
            return False
        if arr.dtype == object or not np.issubdtype(arr.dtype, np.number):
            return False
    return is_square_matrix(arr)
