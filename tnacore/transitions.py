"""Transition computation for tnacore models.

Weights are always derived from a per-sequence transition tensor, so a
model built from sequences and a model rebuilt from a resampled subset of
the same tensor are directly comparable.
"""

from __future__ import annotations

import numpy as np

from .sequences import pad_sequences
from .utils import apply_scaling, is_na, row_normalize


TRANSITION_TYPES = ['relative', 'frequency', 'co-occurrence', 'reverse', 'attention']

UNDIRECTED_TYPES = ('co-occurrence',)


def is_directed(type_: str) -> bool:
    """Whether a model type produces a directed network."""
    return type_ not in UNDIRECTED_TYPES


def _check_type(type_: str) -> None:
    if type_ not in TRANSITION_TYPES:
        raise ValueError(
            f"Unknown transition type: {type_}. Available: {TRANSITION_TYPES}"
        )


def _encode(data: np.ndarray, states: list[str]) -> np.ndarray:
    """Map tokens to state indices; missing or unknown tokens become -1."""
    state_to_idx = {s: i for i, s in enumerate(states)}
    data = np.asarray(data, dtype=object)
    if data.ndim != 2:
        data = pad_sequences(list(data))
    codes = np.full(data.shape, -1, dtype=int)
    for (row, col), val in np.ndenumerate(data):
        if is_na(val):
            continue
        codes[row, col] = state_to_idx.get(str(val), -1)
    return codes


def compute_transitions_3d(
    data: np.ndarray,
    states: list[str],
    type_: str = "relative",
    params: dict | None = None,
) -> np.ndarray:
    """Compute per-sequence transition counts as a 3D array.

    Returns an array of shape (n_sequences, n_states, n_states) where
    ``trans[k, i, j]`` is the (weighted) number of i->j transitions in
    sequence k. Pairs involving a missing value are skipped, so a padded
    sequence contributes exactly the transitions it contains.

    Parameters
    ----------
    data : np.ndarray
        Sequence data (rows are sequences, columns are time steps)
    states : list of str
        List of state labels
    type_ : str
        Transition type:
        - 'relative' / 'frequency': adjacent pairs
        - 'reverse': adjacent pairs, direction swapped
        - 'co-occurrence': every pair of positions, both directions
        - 'attention': every ordered pair of positions, weighted
          ``exp(-beta * distance)``
    params : dict, optional
        ``{'beta': float}`` for the attention type (default 0.1)

    Returns
    -------
    np.ndarray
        3D array of shape (n_sequences, n_states, n_states)
    """
    _check_type(type_)
    params = params or {}
    codes = _encode(data, states)
    n_sequences, n_steps = codes.shape
    n_states = len(states)

    trans = np.zeros((n_sequences, n_states, n_states))
    rows = np.arange(n_sequences)

    if type_ in ("relative", "frequency", "reverse"):
        for col in range(n_steps - 1):
            src, dst = codes[:, col], codes[:, col + 1]
            if type_ == "reverse":
                src, dst = dst, src
            ok = (src >= 0) & (dst >= 0)
            np.add.at(trans, (rows[ok], src[ok], dst[ok]), 1)

    elif type_ == "co-occurrence":
        for i in range(n_steps - 1):
            for j in range(i + 1, n_steps):
                a, b = codes[:, i], codes[:, j]
                ok = (a >= 0) & (b >= 0)
                np.add.at(trans, (rows[ok], a[ok], b[ok]), 1)
                np.add.at(trans, (rows[ok], b[ok], a[ok]), 1)

    elif type_ == "attention":
        beta = params.get('beta', 0.1)
        for i in range(n_steps - 1):
            for j in range(i + 1, n_steps):
                a, b = codes[:, i], codes[:, j]
                ok = (a >= 0) & (b >= 0)
                np.add.at(trans, (rows[ok], a[ok], b[ok]), np.exp(-beta * (j - i)))

    return trans


def compute_initial_probabilities(
    data: np.ndarray,
    states: list[str],
    type_: str = "relative",
) -> np.ndarray:
    """Proportion of sequences starting in each state.

    Reverse models start from the last observed state instead.
    """
    codes = _encode(data, states)
    inits = np.zeros(len(states))
    for row in codes:
        observed = row[row >= 0]
        if observed.size == 0:
            continue
        inits[observed[-1] if type_ == "reverse" else observed[0]] += 1
    total = inits.sum()
    return inits / total if total > 0 else inits


def compute_weights_from_3d(
    transitions: np.ndarray,
    type_: str = "relative",
    scaling: str | list[str] | None = None,
) -> np.ndarray:
    """Compute a weight matrix from (a subset of) a 3D transition tensor.

    Sums over sequences, row-normalizes for the 'relative' type, then
    applies any requested scaling.

    Parameters
    ----------
    transitions : np.ndarray
        3D array (n_sequences, n_states, n_states)
    type_ : str
        Model type ('relative' for row-normalization)
    scaling : str or list, optional
        Additional scaling to apply

    Returns
    -------
    np.ndarray
        2D weight matrix (n_states, n_states)
    """
    weights = np.asarray(transitions).sum(axis=0)
    if type_ == "relative":
        weights = row_normalize(weights)
    weights, _ = apply_scaling(weights, scaling)
    return weights


def compute_weights_from_matrix(mat: np.ndarray, type_: str = "relative") -> np.ndarray:
    """Process an existing weight/count matrix ('relative' row-normalizes)."""
    mat = np.array(mat, dtype=float)
    if type_ == "relative":
        return row_normalize(mat)
    return mat
