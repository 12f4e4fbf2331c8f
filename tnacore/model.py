"""TNA model class and build functions."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence

import numpy as np
import pandas as pd

from .sequences import create_seqdata
from .transitions import (
    compute_initial_probabilities,
    compute_transitions_3d,
    compute_weights_from_3d,
    compute_weights_from_matrix,
    is_directed,
    _check_type,
)
from .utils import apply_scaling, ensure_matrix, is_weight_matrix


@dataclass
class TNA:
    """Transition Network Analysis model.

    Attributes
    ----------
    weights : np.ndarray
        Adjacency/transition matrix (n_states x n_states); row = from state,
        column = to state
    inits : np.ndarray
        Initial state probabilities (n_states,)
    labels : list of str
        State labels
    data : np.ndarray or None
        Padded sequence data (if built from sequences)
    type_ : str
        Model type ('relative', 'frequency', 'co-occurrence', 'reverse',
        'attention')
    scaling : list of str
        Scaling methods applied to the weights
    params : dict
        Type parameters (e.g. ``{'beta': 0.1}`` for attention models)
    """

    weights: np.ndarray
    inits: np.ndarray
    labels: list[str]
    data: np.ndarray | None = None
    type_: str = "relative"
    scaling: list[str] = field(default_factory=list)
    params: dict = field(default_factory=dict)

    def __repr__(self) -> str:
        n = len(self.labels)
        return f"TNA(states={n}, type={self.type_!r}, scaling={self.scaling})"

    def __str__(self) -> str:
        lines = [
            "TNA Model",
            f"  Type: {self.type_}",
            f"  States: {self.labels}",
            f"  Scaling: {self.scaling if self.scaling else 'none'}",
            "",
            "Transition Matrix:",
            self.to_dataframe().to_string(),
        ]
        return '\n'.join(lines)

    @property
    def n_states(self) -> int:
        return len(self.labels)

    @property
    def directed(self) -> bool:
        """False for co-occurrence models, which are mirrored."""
        return is_directed(self.type_)

    def to_dataframe(self) -> pd.DataFrame:
        """Convert weight matrix to labeled DataFrame."""
        return pd.DataFrame(self.weights, index=self.labels, columns=self.labels)

    def summary(self) -> dict:
        """Return summary statistics of the model."""
        off_diag = self.weights[~np.eye(self.n_states, dtype=bool)]
        positive = self.weights[self.weights > 0]
        return {
            'n_states': self.n_states,
            'type': self.type_,
            'scaling': self.scaling,
            'n_edges': int(np.sum(off_diag > 0)),
            'n_sequences': 0 if self.data is None else int(self.data.shape[0]),
            'mean_weight': float(positive.mean()) if positive.size else 0.0,
            'max_weight': float(self.weights.max()) if self.weights.size else 0.0,
            'has_self_loops': bool(np.any(np.diag(self.weights) > 0)),
        }


def create_tna(
    weights: np.ndarray,
    inits: np.ndarray | None,
    labels: Sequence[str],
    data: np.ndarray | None = None,
    type_: str = "relative",
    scaling: list[str] | None = None,
    params: dict | None = None,
) -> TNA:
    """Assemble a TNA model from already computed parts.

    No normalization or scaling is applied; ``weights`` are used as given.
    """
    _check_type(type_)
    weights = np.array(weights, dtype=float)
    n = len(labels)
    if weights.shape != (n, n):
        raise ValueError(
            f"Weight matrix shape {weights.shape} does not match {n} labels"
        )
    if inits is None:
        inits = np.ones(n) / n if n else np.zeros(0)
    return TNA(
        weights=weights,
        inits=np.asarray(inits, dtype=float),
        labels=list(labels),
        data=data,
        type_=type_,
        scaling=list(scaling or []),
        params=dict(params or {}),
    )


def build_model(
    x: pd.DataFrame | np.ndarray | Sequence[Sequence],
    type_: str = "relative",
    scaling: str | list[str] | None = None,
    cols: list[str] | None = None,
    labels: list[str] | None = None,
    begin_state: str | None = None,
    end_state: str | None = None,
    params: dict | None = None,
) -> TNA:
    """Build a TNA model from data.

    Parameters
    ----------
    x : pd.DataFrame, np.ndarray, or list of sequences
        Input data. Can be:
        - Wide-format DataFrame (rows=sequences, cols=time steps)
        - list of (possibly ragged) sequences of state tokens
        - Numeric square weight matrix
    type_ : str
        Model type: 'relative', 'frequency', 'co-occurrence', 'reverse',
        'attention'
    scaling : str or list of str, optional
        Scaling to apply: 'minmax', 'max', 'rank', or None
    cols : list of str, optional
        Column names to use (for DataFrame input)
    labels : list of str, optional
        State labels (auto-detected if not provided)
    begin_state : str, optional
        Add this state at the beginning of each sequence
    end_state : str, optional
        Add this state at the end of each sequence
    params : dict, optional
        Additional parameters for specific model types

    Returns
    -------
    TNA
        The built TNA model
    """
    _check_type(type_)
    params = dict(params or {})

    if is_weight_matrix(x):
        mat = ensure_matrix(x)
        weights = compute_weights_from_matrix(mat, type_)
        n = weights.shape[0]
        if labels is None:
            if isinstance(x, pd.DataFrame):
                labels = [str(c) for c in x.columns]
            else:
                labels = [f"S{i + 1}" for i in range(n)]
        weights, applied = apply_scaling(weights, scaling)
        return create_tna(
            weights, np.ones(n) / n if n else np.zeros(0), labels,
            data=None, type_=type_, scaling=applied, params=params,
        )

    seq_data, detected = create_seqdata(
        x, cols=cols, begin_state=begin_state, end_state=end_state
    )
    state_labels = list(labels) if labels is not None else detected

    trans = compute_transitions_3d(seq_data, state_labels, type_=type_, params=params)
    weights = compute_weights_from_3d(trans, type_=type_)
    weights, applied = apply_scaling(weights, scaling)
    inits = compute_initial_probabilities(seq_data, state_labels, type_=type_)

    return TNA(
        weights=weights,
        inits=inits,
        labels=state_labels,
        data=seq_data,
        type_=type_,
        scaling=applied,
        params=params,
    )


def tna(x, scaling=None, cols=None, labels=None, begin_state=None, end_state=None) -> TNA:
    """Build a relative transition probability model.

    This is the standard TNA model with row-normalized transition probabilities.

    Examples
    --------
    >>> import tnacore
    >>> model = tnacore.tna([['A', 'B', 'C'], ['B', 'C', 'A'], ['A', 'C']])
    >>> model.weights
    """
    return build_model(
        x, type_="relative", scaling=scaling, cols=cols,
        labels=labels, begin_state=begin_state, end_state=end_state
    )


def ftna(x, scaling=None, cols=None, labels=None, begin_state=None, end_state=None) -> TNA:
    """Build a frequency-based transition model (raw transition counts)."""
    return build_model(
        x, type_="frequency", scaling=scaling, cols=cols,
        labels=labels, begin_state=begin_state, end_state=end_state
    )


def ctna(x, scaling=None, cols=None, labels=None, begin_state=None, end_state=None) -> TNA:
    """Build a co-occurrence model (undirected, mirrored counts)."""
    return build_model(
        x, type_="co-occurrence", scaling=scaling, cols=cols,
        labels=labels, begin_state=begin_state, end_state=end_state
    )


def atna(
    x,
    beta: float = 0.1,
    scaling=None,
    cols=None,
    labels=None,
    begin_state=None,
    end_state=None,
) -> TNA:
    """Build an attention-weighted transition model.

    Every later state in a sequence receives weight ``exp(-beta * distance)``.
    """
    return build_model(
        x, type_="attention", scaling=scaling, cols=cols,
        labels=labels, begin_state=begin_state, end_state=end_state,
        params={'beta': beta}
    )
