"""Community detection for TNA models.

All algorithms run on the symmetrized adjacency ``A = W + W.T`` (so
self-loops are counted twice on the diagonal) and are deterministic: none
of them draws random numbers. Where a method needs a visiting order or a
start vector, it is derived from node indices.

Simplifications relative to the textbook algorithms:

- ``louvain`` performs the local-moving phase only (no aggregation into
  super-nodes), so it can report more communities than multilevel Louvain.
- ``leading_eigen`` performs a single sign split of the leading eigenvector
  and never refines the two halves recursively.
- ``edge_betweenness`` scores edges with a hop-count BFS approximation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .model import TNA

logger = logging.getLogger(__name__)


AVAILABLE_METHODS = [
    'louvain',
    'walktrap',
    'fast_greedy',
    'label_prop',
    'leading_eigen',
    'edge_betweenness',
]

LOUVAIN_MAX_PASSES = 50
LABEL_PROP_MAX_ITER = 100
LEADING_EIGEN_ITER = 200


@dataclass
class CommunityResult:
    """Result of community detection.

    Attributes
    ----------
    counts : dict of str to int
        Number of communities found by each method
    assignments : dict of str to np.ndarray
        Per method, one community id per state; ids are contiguous from 0
        in order of first appearance
    labels : list of str
        State labels
    """

    counts: dict[str, int]
    assignments: dict[str, np.ndarray]
    labels: list[str] = field(default_factory=list)

    def __repr__(self) -> str:
        return f"CommunityResult(methods={list(self.counts)}, counts={self.counts})"

    def __str__(self) -> str:
        lines = ["Community Detection Results", ""]
        for method, n in self.counts.items():
            lines.append(f"  {method}: {n} communities")
        lines.append("")
        lines.append("Assignments:")
        lines.append(self.to_dataframe().to_string())
        return "\n".join(lines)

    def to_dataframe(self) -> pd.DataFrame:
        """States as rows, methods as columns."""
        return pd.DataFrame(self.assignments, index=self.labels)

    def members(self, method: str) -> dict[int, list[str]]:
        """Map each community id to the labels it contains."""
        groups: dict[int, list[str]] = {}
        for label, c in zip(self.labels, self.assignments[method]):
            groups.setdefault(int(c), []).append(label)
        return groups


def symmetric_adjacency(weights: np.ndarray) -> np.ndarray:
    """Undirected adjacency ``W + W.T``; the diagonal holds twice the self-loop."""
    w = np.asarray(weights, dtype=float)
    return w + w.T


def modularity(x: TNA | np.ndarray, assignment: Sequence[int]) -> float:
    """Modularity Q of a partition.

    ``Q = (1/2m) * sum_ij [A_ij - k_i k_j / 2m] * delta(c_i, c_j)``

    Parameters
    ----------
    x : TNA or np.ndarray
        A model (its weights are symmetrized first) or an already
        symmetric adjacency matrix
    assignment : sequence of int
        Community id per node

    Returns
    -------
    float
        Modularity, or 0 when the graph carries no weight
    """
    adj = symmetric_adjacency(x.weights) if hasattr(x, 'weights') else np.asarray(x, dtype=float)
    return _modularity(adj, np.asarray(assignment))


def _modularity(adj: np.ndarray, partition: np.ndarray) -> float:
    m2 = adj.sum()
    if m2 == 0:
        return 0.0
    k = adj.sum(axis=1)
    same = partition[:, None] == partition[None, :]
    return float(np.sum((adj - np.outer(k, k) / m2)[same]) / m2)


def renumber(comm: Sequence[int]) -> np.ndarray:
    """Relabel community ids as 0, 1, ... in order of first appearance."""
    mapping: dict[int, int] = {}
    return np.array([mapping.setdefault(int(c), len(mapping)) for c in comm], dtype=int)


def detect_communities(model: 'TNA', method: str) -> CommunityResult:
    """Detect communities with a single method.

    Parameters
    ----------
    model : TNA
        The model to analyze
    method : str
        One of ``AVAILABLE_METHODS``. ``walktrap`` is an alias of
        ``louvain``. An unknown method yields one community per state.

    Returns
    -------
    CommunityResult
        Keyed by ``method``
    """
    adj = symmetric_adjacency(model.weights)
    n = len(model.labels)
    comm = renumber(_run_method(adj, n, method))
    return CommunityResult(
        counts={method: len(set(comm.tolist()))},
        assignments={method: comm},
        labels=list(model.labels),
    )


def communities(
    model: 'TNA',
    methods: str | list[str] | None = None,
) -> CommunityResult | dict:
    """Detect communities with one or more methods.

    Parameters
    ----------
    model : TNA or GroupTNA
        The model to analyze, or a GroupTNA for per-group detection.
    methods : str, list of str, or None
        Community detection method(s). If None, uses 'leading_eigen'.
        Available methods:
        - 'louvain': Local-moving modularity optimization
        - 'walktrap': Mapped to louvain
        - 'fast_greedy': Greedy agglomerative modularity optimization
        - 'label_prop': Label propagation
        - 'leading_eigen': Sign split of the leading modularity eigenvector
        - 'edge_betweenness': Girvan-Newman, best-modularity partition

    Returns
    -------
    CommunityResult or dict
        For GroupTNA input, returns ``dict[str, CommunityResult]``.
    """
    from .group import _is_group_tna
    if _is_group_tna(model):
        return {name: communities(m, methods=methods) for name, m in model.items()}

    if methods is None:
        methods = ['leading_eigen']
    elif isinstance(methods, str):
        methods = [methods]

    invalid = set(methods) - set(AVAILABLE_METHODS)
    if invalid:
        raise ValueError(f"Unknown methods: {invalid}. Available: {AVAILABLE_METHODS}")

    counts: dict[str, int] = {}
    assignments: dict[str, np.ndarray] = {}
    for method in methods:
        single = detect_communities(model, method)
        counts.update(single.counts)
        assignments.update(single.assignments)

    return CommunityResult(counts=counts, assignments=assignments, labels=list(model.labels))


def _run_method(adj: np.ndarray, n: int, method: str) -> np.ndarray:
    if method in ('louvain', 'walktrap'):
        return _louvain(adj, n)
    if method == 'fast_greedy':
        return _fast_greedy(adj, n)
    if method == 'label_prop':
        return _label_prop(adj, n)
    if method == 'leading_eigen':
        return _leading_eigen(adj, n)
    if method == 'edge_betweenness':
        return _edge_betweenness(adj, n)
    logger.warning("Unknown community method %r; returning singleton partition", method)
    return np.arange(n)


def _louvain(adj: np.ndarray, n: int) -> np.ndarray:
    """Single-level Louvain: move nodes while modularity improves."""
    comm = np.arange(n)
    m2 = adj.sum()
    if n <= 1 or m2 == 0:
        return comm

    k = adj.sum(axis=1)
    m2_sq = m2 * m2

    for pass_ in range(LOUVAIN_MAX_PASSES):
        moved = False

        for i in range(n):
            ci = comm[i]
            in_ci = comm == ci
            others = in_ci.copy()
            others[i] = False
            ki_in_current = adj[i, others].sum()
            sigma_tot_current = k[in_ci].sum() - k[i]
            loss_remove = ki_in_current / m2 - sigma_tot_current * k[i] / m2_sq

            # dict preserves first-encounter order while scanning j = 0..n-1
            neighbor_comms = dict.fromkeys(
                int(comm[j]) for j in range(n) if adj[i, j] > 0 and comm[j] != ci
            )

            best_comm, best_dq = ci, 0.0
            for cj in neighbor_comms:
                in_cj = comm == cj
                ki_in_target = adj[i, in_cj].sum()
                sigma_tot_target = k[in_cj].sum()
                gain_add = ki_in_target / m2 - sigma_tot_target * k[i] / m2_sq
                dq = gain_add - loss_remove
                if dq > best_dq:
                    best_dq, best_comm = dq, cj

            if best_comm != ci:
                comm[i] = best_comm
                moved = True

        if not moved:
            logger.debug("louvain converged after %d passes", pass_ + 1)
            break

    return comm


def _fast_greedy(adj: np.ndarray, n: int) -> np.ndarray:
    """Agglomerate the pair of communities with the largest positive dQ."""
    comm = np.arange(n)
    m2 = adj.sum()
    if n <= 1 or m2 == 0:
        return comm

    m2_sq = m2 * m2
    for step in range(n):
        unique = list(dict.fromkeys(comm.tolist()))
        if len(unique) <= 1:
            break

        masks = [comm == c for c in unique]
        strength = [adj[mask].sum() for mask in masks]

        best = None
        best_dq = 0.0
        for a in range(len(unique)):
            for b in range(a + 1, len(unique)):
                e_ab = adj[np.ix_(masks[a], masks[b])].sum()
                dq = 2 * (e_ab / m2 - strength[a] * strength[b] / m2_sq)
                if dq > best_dq:
                    best_dq, best = dq, (unique[a], unique[b])

        if best is None:
            logger.debug("fast_greedy stopped after %d merges", step)
            break
        comm[comm == best[1]] = best[0]

    return comm


def _label_prop(adj: np.ndarray, n: int) -> np.ndarray:
    """Label propagation with an index-derived visiting order."""
    comm = np.arange(n)

    for it in range(LABEL_PROP_MAX_ITER):
        changed = False

        order = list(range(n))
        for i in range(n - 1, 0, -1):
            j = (i * 7 + it * 13) % (i + 1)
            order[i], order[j] = order[j], order[i]

        for i in order:
            scores: dict[int, float] = {}
            for j in range(n):
                if adj[i, j] > 0:
                    c = int(comm[j])
                    scores[c] = scores.get(c, 0.0) + adj[i, j]
            if not scores:
                continue

            current = int(comm[i])
            best_c, best_w = current, scores.get(current, 0.0)
            for c, w in scores.items():
                if w > best_w:
                    best_c, best_w = c, w

            if best_c != current:
                comm[i] = best_c
                changed = True

        if not changed:
            logger.debug("label_prop converged after %d iterations", it + 1)
            break

    return comm


def _leading_eigen(adj: np.ndarray, n: int) -> np.ndarray:
    """Split nodes by the sign of the leading modularity eigenvector."""
    if n <= 1:
        return np.zeros(n, dtype=int)

    k = adj.sum(axis=1)
    m2 = k.sum()
    if m2 == 0:
        return np.arange(n)

    B = adj - np.outer(k, k) / m2

    v = np.array([((i * 7 + 3) % 11) / 11 - 0.5 for i in range(n)])
    for _ in range(LEADING_EIGEN_ITER):
        bv = B @ v
        norm = np.sqrt(np.sum(bv * bv))
        if norm < 1e-15:
            break
        v = bv / norm

    return np.where(v >= 0, 0, 1)


def _edge_betweenness(adj: np.ndarray, n: int) -> np.ndarray:
    """Girvan-Newman: remove top-scoring edges, keep the best-modularity cut."""
    work = adj.copy()
    best_partition = np.arange(n)
    best_mod = -1.0

    for step in range(n * n):
        partition = _connected_components(work, n)
        mod = _modularity(adj, partition)
        if mod > best_mod:
            best_mod, best_partition = mod, partition

        linked = (work > 0) | (work.T > 0)
        dists = [_bfs(linked, n, s) for s in range(n)]
        reach = [int(np.sum(np.isfinite(d))) - 1 for d in dists]

        max_bet, max_edge = 0, None
        for i in range(n):
            for j in range(i + 1, n):
                if not linked[i, j]:
                    continue
                bet = _edge_score(dists, reach, i, j)
                if bet > max_bet:
                    max_bet, max_edge = bet, (i, j)

        if max_edge is None:
            logger.debug("edge_betweenness exhausted edges after %d removals", step)
            break
        i, j = max_edge
        work[i, j] = 0.0
        work[j, i] = 0.0

    return best_partition


def _edge_score(dists: list[np.ndarray], reach: list[int], u: int, v: int) -> int:
    """Approximate betweenness of edge (u, v).

    From each source, every reachable target is credited to the edge when
    u and v sit on consecutive BFS layers.
    """
    score = 0
    for s, dist in enumerate(dists):
        if dist[u] + 1 == dist[v] or dist[v] + 1 == dist[u]:
            score += reach[s]
    return score


def _bfs(linked: np.ndarray, n: int, source: int) -> np.ndarray:
    """Hop distances from ``source``; unreachable nodes are inf."""
    dist = np.full(n, np.inf)
    dist[source] = 0
    queue = [source]
    qi = 0
    while qi < len(queue):
        u = queue[qi]
        qi += 1
        for v in range(n):
            if dist[v] == np.inf and linked[u, v]:
                dist[v] = dist[u] + 1
                queue.append(v)
    return dist


def _connected_components(adj: np.ndarray, n: int) -> np.ndarray:
    comp = np.full(n, -1)
    c = 0
    for i in range(n):
        if comp[i] >= 0:
            continue
        stack = [i]
        while stack:
            u = stack.pop()
            if comp[u] >= 0:
                continue
            comp[u] = c
            for v in range(n):
                if comp[v] < 0 and (adj[u, v] > 0 or adj[v, u] > 0):
                    stack.append(v)
        c += 1
    return comp
