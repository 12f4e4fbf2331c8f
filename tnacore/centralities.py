"""Centrality measures for TNA models.

Path-based measures treat ``1 / weight`` as edge length, so strong
transitions are short.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import networkx as nx
import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .model import TNA


AVAILABLE_MEASURES = [
    'OutStrength',
    'InStrength',
    'ClosenessIn',
    'ClosenessOut',
    'Closeness',
    'Betweenness',
    'Diffusion',
    'Clustering',
]


def centralities(
    model: 'TNA',
    loops: bool = False,
    normalize: bool = False,
    measures: list[str] | None = None,
) -> pd.DataFrame:
    """Compute centrality measures for a TNA model.

    Parameters
    ----------
    model : TNA
        A TNA model object
    loops : bool
        If True, include self-loops in calculations
    normalize : bool
        If True, min-max normalize each measure to [0, 1]
    measures : list of str, optional
        Which measures to compute. If None, computes all of
        ``AVAILABLE_MEASURES``.

    Returns
    -------
    pd.DataFrame
        DataFrame with states as rows and centrality measures as columns,
        in the order of ``AVAILABLE_MEASURES``
    """
    if measures is None:
        measures = list(AVAILABLE_MEASURES)

    invalid = set(measures) - set(AVAILABLE_MEASURES)
    if invalid:
        raise ValueError(f"Unknown measures: {invalid}. Available: {AVAILABLE_MEASURES}")

    weights = np.array(model.weights, dtype=float)
    n = weights.shape[0]
    if not loops:
        np.fill_diagonal(weights, 0)

    G = _create_graph(weights)

    results = {}
    for measure in AVAILABLE_MEASURES:
        if measure not in measures:
            continue
        if measure == 'OutStrength':
            results[measure] = weights.sum(axis=1)
        elif measure == 'InStrength':
            results[measure] = weights.sum(axis=0)
        elif measure == 'ClosenessIn':
            results[measure] = _closeness(G.reverse(copy=True), n)
        elif measure == 'ClosenessOut':
            results[measure] = _closeness(G, n)
        elif measure == 'Closeness':
            results[measure] = _closeness(G.to_undirected(), n)
        elif measure == 'Betweenness':
            results[measure] = _betweenness(G, n)
        elif measure == 'Diffusion':
            results[measure] = _diffusion(weights)
        elif measure == 'Clustering':
            results[measure] = _clustering(weights)

    df = pd.DataFrame(results, index=model.labels)

    if normalize:
        for col in df.columns:
            lo, hi = df[col].min(), df[col].max()
            df[col] = (df[col] - lo) / (hi - lo) if hi > lo else 0.0

    return df


def _create_graph(weights: np.ndarray) -> nx.DiGraph:
    """Create a NetworkX DiGraph with ``distance = 1 / weight`` per edge."""
    n = weights.shape[0]
    G = nx.DiGraph()
    G.add_nodes_from(range(n))
    rows, cols = np.nonzero(weights > 0)
    for i, j in zip(rows.tolist(), cols.tolist()):
        G.add_edge(i, j, weight=weights[i, j], distance=1.0 / weights[i, j])
    return G


def _closeness(G: nx.Graph, n: int) -> np.ndarray:
    """Closeness from each node: reachable count over total distance.

    Pass the reversed graph for incoming closeness and the undirected view
    for mode "all".
    """
    result = np.zeros(n)
    for i in range(n):
        lengths = nx.single_source_dijkstra_path_length(G, i, weight='distance')
        others = [d for j, d in lengths.items() if j != i]
        total = sum(others)
        if total > 0:
            result[i] = len(others) / total
    return result


def _betweenness(G: nx.DiGraph, n: int) -> np.ndarray:
    """Unnormalized betweenness over weighted shortest paths."""
    bc = nx.betweenness_centrality(G, weight='distance', normalized=False)
    return np.array([bc.get(i, 0.0) for i in range(n)])


def _diffusion(weights: np.ndarray) -> np.ndarray:
    """Diffusion centrality: row sums of ``sum_{k=1..n} W^k``."""
    n = weights.shape[0]
    s = np.zeros((n, n))
    p = np.eye(n)
    for _ in range(n):
        p = p @ weights
        s = s + p
    return s.sum(axis=1)


def _clustering(weights: np.ndarray) -> np.ndarray:
    """Weighted clustering coefficient on the symmetrized matrix.

    Zhang and Horvath (2005): ``diag(W^3) / (colsum^2 - colsum(W^2))``.
    """
    mat = weights + weights.T
    np.fill_diagonal(mat, 0)
    num = np.diag(mat @ mat @ mat)
    den = mat.sum(axis=0) ** 2 - (mat ** 2).sum(axis=0)
    with np.errstate(divide='ignore', invalid='ignore'):
        result = num / den
    result[~np.isfinite(result)] = 0.0
    return result
