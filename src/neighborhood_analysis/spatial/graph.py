"""
graph.py - Radius neighbor search and neighbor graphs

Builds a KD-tree over 2D points once and answers radius queries against
it. The resulting neighbor relation is the foundation of every
co-occurrence count and permutation test in this package.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
from scipy import sparse
from sklearn.neighbors import NearestNeighbors

from .shared.utils import validate_neighbors, validate_points, validate_radius

logger = logging.getLogger(__name__)

DENSE_GRAPH_DEGREE = 100


class RadiusIndex:
    """
    Static KD-tree over a 2D point set.

    The point set is fixed at construction. An empty point set is
    allowed; every query against it returns an empty list.

    Parameters
    ----------
    points : sequence of (float, float) or np.ndarray
        Point coordinates. Position in the sequence is the point's index.

    Examples
    --------
    >>> index = RadiusIndex([(0, 0), (0, 1), (5, 5)])
    >>> index.query_radius((0, 0), 1.0)
    [0, 1]
    """

    def __init__(self, points):
        self.coords = validate_points(points)
        self._nn: Optional[NearestNeighbors] = None
        if len(self.coords) > 0:
            self._nn = NearestNeighbors(algorithm='kd_tree', metric='euclidean')
            self._nn.fit(self.coords)

    def __len__(self) -> int:
        return len(self.coords)

    def query_radius(self, point, r: float) -> List[int]:
        """
        Indices of all points within Euclidean distance r of `point`.

        The boundary is inclusive (distance == r is a neighbor). A
        negative radius raises ValidationError.
        """
        return self.query_radius_many([point], r)[0]

    def query_radius_many(self, points, r: float) -> List[List[int]]:
        """Batch form of query_radius, one sorted list per query point."""
        r = validate_radius(r)
        query = validate_points(points)
        if self._nn is None or len(query) == 0:
            return [[] for _ in range(len(query))]

        ind = self._nn.radius_neighbors(query, radius=r, return_distance=False)
        return [np.sort(i).tolist() for i in ind]


def get_neighbors(points, r: float) -> Dict[int, List[int]]:
    """
    A utility function to search for neighbors.

    Parameters
    ----------
    points : sequence of (float, float)
        Two dimension points.
    r : float
        The search radius.

    Returns
    -------
    dict
        The index of every point, with the indices of its neighbors.
        Each point is its own neighbor (distance 0).
    """
    index = RadiusIndex(points)
    found = index.query_radius_many(index.coords, r)
    logger.debug("Radius query r=%s over %d points", r, len(index))
    return {i: ids for i, ids in enumerate(found)}


@dataclass
class NeighborGraph:
    """
    Container for a neighbor relation in sparse matrix form.

    Attributes
    ----------
    adjacency : sparse.csr_matrix
        Count matrix (n_points x n_points). Entry [k, j] is the number of
        times j appears in the neighbor list of k.
    centers : np.ndarray
        Boolean mask of points that have a neighbor list (keys of the
        source mapping). Only these points act as centers when counting.
    params : dict
        Parameters used (e.g., {'radius': 30.0, 'ignore_self': False}).
    """
    adjacency: sparse.csr_matrix
    centers: np.ndarray
    params: dict

    @classmethod
    def from_dict(
        cls,
        neighbors,
        n_points: Optional[int] = None,
        ignore_self: bool = False,
    ) -> NeighborGraph:
        """
        Build from a {point: [neighbors]} mapping.

        With ignore_self=True, entries equal to their own center index
        are dropped. The comparison is on the neighbor's index, not its
        position in the list.
        """
        rows, cols, keys, n_points = validate_neighbors(neighbors, n_points)

        if ignore_self:
            keep = rows != cols
            rows, cols = rows[keep], cols[keep]

        # duplicate (row, col) entries are summed by the CSR conversion
        adjacency = sparse.csr_matrix(
            (np.ones(len(rows), dtype=np.float64), (rows, cols)),
            shape=(n_points, n_points),
        )
        adjacency.sum_duplicates()

        centers = np.zeros(n_points, dtype=bool)
        centers[keys] = True

        return cls(
            adjacency=adjacency,
            centers=centers,
            params={'ignore_self': ignore_self},
        )

    @property
    def n_points(self) -> int:
        return self.adjacency.shape[0]

    @property
    def n_edges(self) -> int:
        """Directed entry count, self-loops included."""
        return int(self.adjacency.sum())

    @property
    def mean_degree(self) -> float:
        degrees = self.degree()
        return float(degrees[self.centers].mean()) if self.centers.any() else 0.0

    def degree(self) -> np.ndarray:
        """Neighbor count for every point."""
        return np.asarray(self.adjacency.sum(axis=1)).ravel().astype(np.int64)

    def without_self(self) -> NeighborGraph:
        """Copy with self-loops removed."""
        if self.params.get('ignore_self') or self.n_points == 0:
            return self
        diagonal = sparse.diags(
            self.adjacency.diagonal(), offsets=0,
            shape=self.adjacency.shape, format='csr',
        )
        adjacency = (self.adjacency - diagonal).tocsr()
        adjacency.eliminate_zeros()
        return NeighborGraph(
            adjacency=adjacency,
            centers=self.centers.copy(),
            params={**self.params, 'ignore_self': True},
        )

    def to_dict(self) -> Dict[int, List[int]]:
        """Back to {point: [neighbors]}, repeating duplicated entries."""
        result = {}
        indptr, indices, data = self.adjacency.indptr, self.adjacency.indices, self.adjacency.data
        for k in np.flatnonzero(self.centers):
            lo, hi = indptr[k], indptr[k + 1]
            result[int(k)] = np.repeat(indices[lo:hi], data[lo:hi].astype(np.int64)).tolist()
        return result

    def summary(self) -> dict:
        degrees = self.degree()[self.centers]
        return {
            'params': self.params,
            'n_points': self.n_points,
            'n_centers': int(self.centers.sum()),
            'n_edges': self.n_edges,
            'mean_degree': degrees.mean() if len(degrees) > 0 else 0.0,
            'min_degree': int(degrees.min()) if len(degrees) > 0 else 0,
            'max_degree': int(degrees.max()) if len(degrees) > 0 else 0,
        }

    def __repr__(self) -> str:
        s = self.summary()
        return (
            f"NeighborGraph ({s['n_points']} points, {s['n_edges']} entries, "
            f"mean degree={s['mean_degree']:.1f})"
        )


def build_radius_graph(points, radius: float) -> NeighborGraph:
    """
    Build distance-threshold graph.

    Connects every point to all points within the radius, itself
    included. This naturally reflects biological interaction distances
    (e.g., paracrine range).

    Parameters
    ----------
    points : sequence of (float, float)
        Point coordinates.
    radius : float
        Maximum distance to connect two points (in coordinate units).

    Returns
    -------
    NeighborGraph
    """
    radius = validate_radius(radius, 'radius')
    coords = validate_points(points)
    neighbors = get_neighbors(coords, radius)
    graph = NeighborGraph.from_dict(neighbors, n_points=len(coords))
    graph.params['radius'] = float(radius)

    mean_deg = graph.mean_degree

    # Warn if graph is very dense
    if mean_deg > DENSE_GRAPH_DEGREE:
        print(f"  ⚠ Very dense graph (mean degree={mean_deg:.0f}). "
              f"Consider a smaller radius.")

    print(f"  ✓ Radius graph: r={radius}, {graph.n_edges} entries, "
          f"mean degree={mean_deg:.1f}")

    return graph
