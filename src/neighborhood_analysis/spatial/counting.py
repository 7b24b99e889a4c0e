"""
counting.py - Neighbor type counting

For every center cell, counts how many of its neighbors carry each cell
type, then averages those counts per registered combination. This is the
statistic recomputed on every permutation, so it works on integer codes
and sparse matrix products rather than per-cell Python loops.
"""
from __future__ import annotations

from typing import Dict, Union

import numpy as np
from scipy import sparse

from ..config import ValidationError
from .combinations import CellCombs, Pair
from .graph import NeighborGraph
from .shared.utils import label_codes, safe_divide, validate_status, validate_types


# ========== Shared helpers ==========

def resolve_graph(
    neighbors: Union[dict, NeighborGraph],
    n_points: int,
    ignore_self: bool = False,
) -> NeighborGraph:
    """
    Accept a neighbor mapping or a pre-built NeighborGraph.

    The graph must cover exactly `n_points` points. Self-exclusion is
    applied here, on a copy; the caller's relation is left untouched.
    """
    if not isinstance(ignore_self, (bool, np.bool_)):
        raise ValidationError('ignore_self', "a bool")

    if isinstance(neighbors, NeighborGraph):
        if neighbors.n_points != n_points:
            raise ValidationError(
                'neighbors', f"a graph over {n_points} points (got {neighbors.n_points})"
            )
        return neighbors.without_self() if ignore_self else neighbors

    return NeighborGraph.from_dict(neighbors, n_points=n_points, ignore_self=bool(ignore_self))


def _onehot(codes: np.ndarray, n_types: int, weights: np.ndarray = None) -> sparse.csr_matrix:
    """(n_points x n_types) indicator matrix, optionally row-weighted."""
    n = len(codes)
    data = np.ones(n) if weights is None else weights.astype(np.float64)
    return sparse.csr_matrix(
        (data, (np.arange(n), codes)),
        shape=(n, n_types),
    )


def _count_codes(codes: np.ndarray, graph: NeighborGraph, combs: CellCombs) -> np.ndarray:
    """
    Mean neighbor counts for one labeling, in registry order.

    Every center of type c contributes, to each pair routed from c, one
    observation: its number of neighbors of the partner type (0 if none).
    """
    n_types = combs.n_types
    onehot = _onehot(codes, n_types)
    center_onehot = _onehot(codes, n_types, weights=graph.centers)

    # C_center.T @ A @ C -> (n_types x n_types) summed neighbor counts
    neighbor_counts = graph.adjacency.dot(onehot)
    interactions = np.asarray(center_onehot.T.dot(neighbor_counts).todense())

    n_centers = np.bincount(codes[graph.centers], minlength=n_types)

    m = len(combs)
    totals = np.bincount(
        combs.route_key,
        weights=interactions[combs.route_center, combs.route_partner],
        minlength=m,
    )
    n_obs = np.bincount(
        combs.route_key,
        weights=n_centers[combs.route_center],
        minlength=m,
    )

    # A pair whose types never occur as centers has no observations
    return safe_divide(totals, n_obs, fill_value=0.0)


def _comb_count(x: np.ndarray, y: np.ndarray, graph: NeighborGraph) -> float:
    """Number of (center with x, neighbor with y) entries."""
    y_neighbors = graph.adjacency.dot(y.astype(np.float64))
    return float(np.dot((x & graph.centers).astype(np.float64), y_neighbors))


# ========== Public counters ==========

def count_neighbors(
    types,
    neighbors: Union[dict, NeighborGraph],
    combs: CellCombs,
    ignore_self: bool = False,
) -> Dict[Pair, float]:
    """
    Mean neighbor count per cell type combination.

    For pair (A, B), averages over every center cell of type A the number
    of its neighbors of type B. In the unordered case the pair also
    collects, from every center of type B, the number of type A neighbors.

    Parameters
    ----------
    types : list of str
        Cell type of every cell (index = cell index).
    neighbors : dict or NeighborGraph
        e.g. {1: [4, 5], 2: [6, 7]}.
    combs : CellCombs
        Registry built from the cell types.
    ignore_self : bool
        If True, a cell is not counted as its own neighbor.

    Returns
    -------
    dict
        pair -> mean neighbor count

    Examples
    --------
    >>> combs = CellCombs(['A', 'B'])
    >>> count_neighbors(['A', 'B'], {0: [0, 1], 1: [0, 1]}, combs)
    {('A', 'A'): 1.0, ('A', 'B'): 1.0, ('B', 'B'): 1.0}
    """
    if not isinstance(combs, CellCombs):
        raise ValidationError('combs', "a CellCombs registry")
    labels = validate_types(types)
    codes = label_codes(labels, combs.cell_types)
    graph = resolve_graph(neighbors, len(labels), ignore_self)

    means = _count_codes(codes, graph, combs)
    return {comb: float(v) for comb, v in zip(combs.cell_combs, means)}


def comb_count_neighbors(
    x_status,
    y_status,
    neighbors: Union[dict, NeighborGraph],
    ignore_self: bool = False,
) -> int:
    """
    Count neighbor co-occurrence between two boolean cell states.

    Sums, over every center cell with x_status True, the number of its
    neighbors with y_status True.

    Parameters
    ----------
    x_status : list of bool
        If cell is type x.
    y_status : list of bool
        If cell is type y.
    neighbors : dict or NeighborGraph
        e.g. {1: [4, 5], 2: [6, 7]}.
    ignore_self : bool
        If True, a cell is not counted as its own neighbor.

    Returns
    -------
    int
    """
    x = validate_status(x_status, 'x_status')
    y = validate_status(y_status, 'y_status')
    if len(x) != len(y):
        raise ValidationError('y_status', f"list of bool with {len(x)} entries (same as x_status)")
    graph = resolve_graph(neighbors, len(x), ignore_self)

    return int(round(_comb_count(x, y, graph)))
