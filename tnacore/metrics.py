"""Network-level structural metrics computed from a TNA weight matrix."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import asdict, dataclass
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from .model import TNA

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GraphMetrics:
    """Structural descriptors of a transition network.

    Attributes
    ----------
    nodes : int
        Number of states
    edges : float
        Non-zero off-diagonal entries (halved for undirected models)
    density : float
        Edges over the maximum possible number of edges
    avg_degree : float
        Mean number of edges per node
    avg_weighted_degree : float
        Mean of (out-strength + in-strength) / 2, self-loops excluded
    reciprocity : float or None
        Share of directed edges whose reverse also exists; None if undirected
    transitivity : float
        Global clustering coefficient of the symmetrized binary graph
    avg_path_length : float
        Mean finite shortest-path length (distance = 1 / weight)
    diameter : float
        Longest finite shortest path
    components : int
        Weakly connected components
    largest_component_size : int
        Size of the largest component
    self_loops : int
        Number of states with a non-zero self-loop
    """

    nodes: int
    edges: float
    density: float
    avg_degree: float
    avg_weighted_degree: float
    reciprocity: float | None
    transitivity: float
    avg_path_length: float
    diameter: float
    components: int
    largest_component_size: int
    self_loops: int

    def to_dict(self) -> dict:
        return asdict(self)


def compute_graph_metrics(model: 'TNA') -> GraphMetrics:
    """Compute structural metrics for a TNA model.

    Co-occurrence models are treated as undirected: each edge is stored in
    both directions and counted once.

    Parameters
    ----------
    model : TNA
        The model to describe. Its weights are not modified.

    Returns
    -------
    GraphMetrics
    """
    w = np.asarray(model.weights, dtype=float)
    n = len(model.labels)
    undirected = model.type_ == "co-occurrence"

    if n == 0 or w.size == 0:
        return GraphMetrics(
            nodes=0, edges=0, density=0.0, avg_degree=0.0, avg_weighted_degree=0.0,
            reciprocity=None if undirected else 0.0, transitivity=0.0,
            avg_path_length=0.0, diameter=0.0, components=0,
            largest_component_size=0, self_loops=0,
        )

    off_diag = ~np.eye(n, dtype=bool)
    present = (w > 0) & off_diag

    self_loops = int(np.sum(np.diag(w) > 0))
    edge_count = int(present.sum())
    edges = edge_count / 2 if undirected else edge_count

    max_edges = n * (n - 1) / 2 if undirected else n * (n - 1)
    density = edges / max_edges if max_edges > 0 else 0.0
    avg_degree = (2 * edges / n) if undirected else edges / n

    w_off = np.where(off_diag, w, 0.0)
    avg_weighted_degree = float(np.mean((w_off.sum(axis=1) + w_off.sum(axis=0)) / 2))

    reciprocity = None
    if not undirected:
        mutual = int(np.sum(present & present.T))
        reciprocity = mutual / edge_count if edge_count > 0 else 0.0

    adj = present | present.T
    transitivity = _transitivity(adj)
    avg_path_length, diameter = _path_lengths(w, undirected)
    components, largest = _components(adj)

    metrics = GraphMetrics(
        nodes=n,
        edges=edges,
        density=density,
        avg_degree=avg_degree,
        avg_weighted_degree=avg_weighted_degree,
        reciprocity=reciprocity,
        transitivity=transitivity,
        avg_path_length=avg_path_length,
        diameter=diameter,
        components=components,
        largest_component_size=largest,
        self_loops=self_loops,
    )
    logger.debug("Graph metrics for %d states: %s", n, metrics)
    return metrics


def _transitivity(adj: np.ndarray) -> float:
    """3 * triangles / connected triples on a binary symmetric adjacency."""
    a = adj.astype(float)
    deg = a.sum(axis=1)
    triples = float(np.sum(deg * (deg - 1) / 2))
    if triples == 0:
        return 0.0
    # trace(A^3) counts every triangle six times
    triangles = np.trace(a @ a @ a) / 6
    return float(3 * triangles / triples)


def _path_lengths(w: np.ndarray, undirected: bool) -> tuple[float, float]:
    """Floyd-Warshall with distance = 1 / weight; (mean, max) of finite pairs."""
    n = w.shape[0]
    with np.errstate(divide='ignore'):
        dist = np.where(w > 0, 1.0 / w, np.inf)
    if undirected:
        dist = np.minimum(dist, dist.T)
    np.fill_diagonal(dist, 0.0)

    for k in range(n):
        dist = np.minimum(dist, dist[:, k:k + 1] + dist[k:k + 1, :])

    mask = np.isfinite(dist) & ~np.eye(n, dtype=bool)
    if not mask.any():
        return 0.0, 0.0
    finite = dist[mask]
    return float(finite.mean()), float(finite.max())


def _components(adj: np.ndarray) -> tuple[int, int]:
    """Breadth-first search over the symmetrized adjacency."""
    n = adj.shape[0]
    visited = np.zeros(n, dtype=bool)
    count = 0
    largest = 0
    for start in range(n):
        if visited[start]:
            continue
        count += 1
        size = 0
        queue = deque([start])
        visited[start] = True
        while queue:
            v = queue.popleft()
            size += 1
            for u in np.flatnonzero(adj[v] & ~visited):
                visited[u] = True
                queue.append(u)
        largest = max(largest, size)
    return count, largest
