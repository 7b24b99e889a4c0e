"""
combinations.py - Cell type pair registry

Enumerates the cell type pairs to test and, for every cell type, the
pairs it takes part in as the center type. Built once per vocabulary and
shared read-only by every count and permutation.
"""
from __future__ import annotations

import logging
from typing import Dict, Iterator, List, Tuple

import numpy as np

from ..config import ConsistencyError, ValidationError
from .shared.utils import validate_types

logger = logging.getLogger(__name__)

Pair = Tuple[str, str]


class CellCombs:
    """
    Registry of cell type combinations.

    Parameters
    ----------
    types : list of str
        All the types of cells in your research. Duplicates are collapsed,
        keeping first-seen order.
    order : bool
        If False (default), ('A', 'B') and ('B', 'A') are the same pair and
        only the first-registered orientation is kept.

    Attributes
    ----------
    cell_types : list of str
        Distinct types in first-seen order.
    cell_combs : list of tuple
        Pairs under test: k*k if ordered, k*(k+1)/2 if not.
    cell_relationships : dict
        type -> every (type, other) pair with `type` as the center.
        In the unordered case some of these are the reverse of a
        registered pair; `key()` maps them back.

    Examples
    --------
    >>> combs = CellCombs(['T', 'B', 'T', 'Tumor'])
    >>> combs.cell_combs
    [('T', 'T'), ('T', 'B'), ('T', 'Tumor'), ('B', 'B'), ('B', 'Tumor'), ('Tumor', 'Tumor')]
    >>> combs.key('Tumor', 'T')
    ('T', 'Tumor')
    """

    def __init__(self, types, order: bool = False):
        labels = validate_types(types)
        if len(labels) == 0:
            raise ValidationError('types', "a non-empty list of string")
        if not isinstance(order, (bool, np.bool_)):
            raise ValidationError('order', "a bool")

        self.order = bool(order)
        self.cell_types: List[str] = list(dict.fromkeys(labels))
        uni = self.cell_types
        k = len(uni)

        if self.order:
            self.cell_combs: List[Pair] = [(a, b) for a in uni for b in uni]
        else:
            self.cell_combs = [(uni[i], uni[j]) for i in range(k) for j in range(i, k)]

        self._index: Dict[Pair, int] = {c: i for i, c in enumerate(self.cell_combs)}

        self.cell_relationships: Dict[str, List[Pair]] = {
            a: [(a, b) for b in uni] for a in uni
        }

        # Integer routes: (center code, partner code) -> registered pair index
        centers, partners, keys = [], [], []
        for ci, a in enumerate(uni):
            for pi, (_, b) in enumerate(self.cell_relationships[a]):
                centers.append(ci)
                partners.append(pi)
                keys.append(self._route((a, b)))
        self.route_center = np.asarray(centers, dtype=np.int64)
        self.route_partner = np.asarray(partners, dtype=np.int64)
        self.route_key = np.asarray(keys, dtype=np.int64)

        if k == 1:
            logger.warning("Only one cell type (%r); testing its self-pair only", uni[0])

    def _route(self, comb: Pair) -> int:
        idx = self._index.get(comb)
        if idx is None:
            idx = self._index.get((comb[1], comb[0]))
        if idx is None:
            raise ConsistencyError(f"No registered combination for {comb}")
        return idx

    @property
    def n_types(self) -> int:
        return len(self.cell_types)

    def key(self, a: str, b: str) -> Pair:
        """Canonical registered pair for types a and b."""
        for t in (a, b):
            if t not in self.cell_relationships:
                raise ValidationError('types', f"one of {self.cell_types} (got {t!r})")
        return self.cell_combs[self._route((a, b))]

    def __len__(self) -> int:
        return len(self.cell_combs)

    def __iter__(self) -> Iterator:
        # Unpacks as (vocabulary, pairs, adjacency)
        return iter((self.cell_types, self.cell_combs, self.cell_relationships))

    def __repr__(self) -> str:
        return (
            f"CellCombs ({self.n_types} types, {len(self)} combinations, "
            f"order={self.order})"
        )

    def bootstrap(
        self,
        types,
        neighbors,
        times: int = 500,
        pval: float = 0.05,
        method: str = 'pval',
        ignore_self: bool = False,
        seed=None,
        n_jobs: int = 1,
    ) -> List[Tuple[Pair, float]]:
        """
        Bootstrap functions.

        If method is 'pval', 1.0 means association, -1.0 means avoidance.
        If method is 'zscore', results is the exact z-score value.

        Parameters
        ----------
        types : list of str
            The type of all the cells.
        neighbors : dict
            e.g. {1: [4, 5], 2: [6, 7]}: cell at index 1 has neighbor
            cells at index 4 and 5.
        times : int
            How many times to perform bootstrap.
        pval : float
            The threshold of p-value.
        method : str
            'pval' or 'zscore'.
        ignore_self : bool
            Whether to drop a cell from its own neighbor list.
        seed : int, optional
            Session seed; every trial derives its own generator from it.
        n_jobs : int
            Parallel workers (-1 = all cores).

        Returns
        -------
        list of tuple
            e.g. (('a', 'b'), 1.0): type a and type b are associated.
        """
        from .permutation import bootstrap

        return bootstrap(
            types, neighbors, self,
            times=times, pval=pval, method=method,
            ignore_self=ignore_self, seed=seed, n_jobs=n_jobs,
        )


def build_combinations(types, order: bool = False) -> CellCombs:
    """
    Build the combination registry for a set of cell types.

    The result unpacks as ``cell_types, cell_combs, cell_relationships``
    and can be reused across bootstrap calls.
    """
    combs = CellCombs(types, order=order)
    logger.debug("Registered %s", combs)
    return combs
