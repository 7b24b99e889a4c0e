"""
permutation.py - Permutation tests for neighbor co-occurrence

Shuffles cell type labels while keeping the neighbor graph fixed,
recomputes the neighbor counts each time, and compares the observed
counts against that null distribution.

Reproducibility
---------------
Every trial draws from its own generator, spawned from one
``np.random.SeedSequence(seed)``. Trial t always sees the same shuffle
for a given seed, whatever ``n_jobs`` is or the order workers finish in.

Example
-------
>>> points = [(0, 0), (0, 1), (1, 0), (1, 1)]
>>> neighbors = get_neighbors(points, 1.5)
>>> combs = CellCombs(['A', 'A', 'B', 'B'])
>>> result = bootstrap(['A', 'A', 'B', 'B'], neighbors, combs, times=99, seed=0)
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from joblib import Parallel, delayed, effective_n_jobs

from ..config import BootstrapConfig, ValidationError
from .combinations import CellCombs, Pair, build_combinations
from .counting import _comb_count, _count_codes, resolve_graph
from .graph import NeighborGraph, build_radius_graph
from .shared.utils import (
    label_codes,
    safe_divide,
    validate_points,
    validate_status,
    validate_types,
)

logger = logging.getLogger(__name__)


# ========== Shared helpers ==========

def _resolve_config(config: Optional[BootstrapConfig], **kwargs) -> BootstrapConfig:
    """Explicit config wins; otherwise build (and validate) one from kwargs."""
    if config is not None:
        if not isinstance(config, BootstrapConfig):
            raise ValidationError('config', "a BootstrapConfig")
        return config
    return BootstrapConfig(**kwargs)


def _trial_seeds(seed: Optional[int], times: int) -> List[np.random.SeedSequence]:
    """One independent seed sequence per trial."""
    return np.random.SeedSequence(seed).spawn(times)


def _permute(values: np.ndarray, seed_seq: np.random.SeedSequence) -> np.ndarray:
    """Full shuffle: same multiset of values, new order."""
    return np.random.default_rng(seed_seq).permutation(values)


def _chunk_size(times: int, n_jobs: int, chunk_size: Optional[int]) -> int:
    if chunk_size is not None:
        return chunk_size
    # a few chunks per worker evens out uneven finishing times
    workers = effective_n_jobs(n_jobs)
    return max(1, math.ceil(times / (workers * 4)))


def _fan_out(worker, seeds, n_jobs: int, chunk_size: Optional[int], *args) -> np.ndarray:
    """
    Run `worker(*args, seed_chunk)` over chunks of trial seeds.

    Results are concatenated in trial order, so the output does not
    depend on scheduling.
    """
    size = _chunk_size(len(seeds), n_jobs, chunk_size)
    chunks = [seeds[i:i + size] for i in range(0, len(seeds), size)]
    logger.debug("Dispatching %d trials in %d chunks (n_jobs=%d)", len(seeds), len(chunks), n_jobs)

    # workers only read the shared graph / registry; threads avoid pickling them
    results = Parallel(n_jobs=n_jobs, prefer='threads')(
        delayed(worker)(*args, chunk) for chunk in chunks
    )
    return np.concatenate(results, axis=0)


def _types_chunk(codes, graph, combs, seeds) -> np.ndarray:
    out = np.empty((len(seeds), len(combs)), dtype=np.float64)
    for i, seed_seq in enumerate(seeds):
        out[i] = _count_codes(_permute(codes, seed_seq), graph, combs)
    return out


def _status_chunk(x, y, graph, seeds) -> np.ndarray:
    out = np.empty(len(seeds), dtype=np.float64)
    for i, seed_seq in enumerate(seeds):
        out[i] = _comb_count(x, _permute(y, seed_seq), graph)
    return out


# ========== Permutation runs ==========

def run_permutations(
    codes: np.ndarray,
    graph: NeighborGraph,
    combs: CellCombs,
    times: int = 500,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """
    Null distribution of mean neighbor counts.

    Parameters
    ----------
    codes : np.ndarray
        Integer cell type codes (positions in combs.cell_types).
    graph : NeighborGraph
        Shared, read-only neighbor graph.
    combs : CellCombs
        Shared, read-only combination registry.
    times : int
        Number of label shuffles.
    seed : int, optional
        Session seed.
    n_jobs : int
        Parallel workers (-1 = all cores).
    chunk_size : int, optional
        Trials per worker task.

    Returns
    -------
    np.ndarray
        (times x n_combinations); row t holds trial t.
    """
    seeds = _trial_seeds(seed, times)
    return _fan_out(_types_chunk, seeds, n_jobs, chunk_size, codes, graph, combs)


def run_comb_permutations(
    x: np.ndarray,
    y: np.ndarray,
    graph: NeighborGraph,
    times: int = 500,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    chunk_size: Optional[int] = None,
) -> np.ndarray:
    """Null distribution of the x/y co-occurrence count (y is shuffled)."""
    seeds = _trial_seeds(seed, times)
    return _fan_out(_status_chunk, seeds, n_jobs, chunk_size, x, y, graph)


def permuted_labelings(types, times: int = 500, seed: Optional[int] = None) -> Iterator[List[str]]:
    """
    Yield the shuffled labelings the engine would test, in trial order.

    Examples
    --------
    >>> for labels in permuted_labelings(['A', 'B', 'B'], times=3, seed=0):
    ...     print(labels)
    """
    labels = validate_types(types)
    vocabulary = list(dict.fromkeys(labels))
    codes = label_codes(labels, vocabulary)
    for seed_seq in _trial_seeds(seed, times):
        yield [vocabulary[c] for c in _permute(codes, seed_seq)]


# ========== Reductions ==========

def zscore_reduce(real: np.ndarray, null: np.ndarray) -> np.ndarray:
    """
    (real - mean(null)) / std(null), column-wise.

    Uses the population standard deviation (divide by N). Columns whose
    null samples are all identical get 0 instead of NaN / inf.
    """
    real = np.asarray(real, dtype=np.float64)
    null = np.asarray(null, dtype=np.float64)

    null_mean = null.mean(axis=0)
    null_std = null.std(axis=0)
    # identical samples can leave a rounding-size std; treat as exactly 0
    null_std = np.where(np.ptp(null, axis=0) == 0, 0.0, null_std)

    return safe_divide(real - null_mean, null_std, fill_value=0.0)


def empirical_pvalues(real: np.ndarray, null: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    One-tailed empirical p-value in the observed direction.

    gt = #(null >= real) / (T + 1) and lt = #(null <= real) / (T + 1).
    A null value equal to real satisfies both comparisons and counts in
    both tails. If gt < lt the direction is enrichment (+1) and p = gt,
    otherwise depletion (-1) and p = lt.

    Returns
    -------
    pvalue : np.ndarray
    direction : np.ndarray
        +1.0 (co-localization) or -1.0 (avoidance).
    """
    real = np.asarray(real, dtype=np.float64)
    null = np.asarray(null, dtype=np.float64)
    times = null.shape[0]

    gt = (null >= real).sum(axis=0) / (times + 1)
    lt = (null <= real).sum(axis=0) / (times + 1)

    enriched = gt < lt
    pvalue = np.where(enriched, gt, lt)
    direction = np.where(enriched, 1.0, -1.0)
    return pvalue, direction


def pval_reduce(real: np.ndarray, null: np.ndarray, pval: float = 0.05) -> np.ndarray:
    """+1 (association), -1 (avoidance) or 0 (not significant) per column."""
    pvalue, direction = empirical_pvalues(real, null)
    return np.where(pvalue < pval, direction, 0.0)


# ========== Results ==========

@dataclass
class BootstrapResult:
    """
    Observed counts and their null distribution for every combination.

    Attributes
    ----------
    combs : CellCombs
        Registry the columns refer to.
    observed : np.ndarray
        (n_combinations,) mean neighbor counts for the real labels.
    null : np.ndarray
        (times x n_combinations) counts for the shuffled labels.
    """
    combs: CellCombs
    observed: np.ndarray
    null: np.ndarray

    @property
    def times(self) -> int:
        return self.null.shape[0]

    def expected(self) -> np.ndarray:
        return self.null.mean(axis=0)

    def std(self) -> np.ndarray:
        return self.null.std(axis=0)

    def zscore(self) -> np.ndarray:
        return zscore_reduce(self.observed, self.null)

    def pvalues(self) -> Tuple[np.ndarray, np.ndarray]:
        return empirical_pvalues(self.observed, self.null)

    def significance(self, pval: float = 0.05) -> np.ndarray:
        return pval_reduce(self.observed, self.null, pval)

    def to_list(self, method: str = 'pval', pval: float = 0.05) -> List[Tuple[Pair, float]]:
        """[(pair, value), ...] in registry order."""
        if method == 'pval':
            values = self.significance(pval)
        elif method == 'zscore':
            values = self.zscore()
        else:
            raise ValidationError('method', "'pval' or 'zscore'")
        return [(comb, float(v)) for comb, v in zip(self.combs.cell_combs, values)]

    def to_frame(self, pval: float = 0.05) -> pd.DataFrame:
        """
        One row per combination.

        Columns: observed, expected, std, zscore, pvalue, direction,
        significant (direction if pvalue < pval, else 0).
        """
        pvalue, direction = self.pvalues()
        index = pd.MultiIndex.from_tuples(self.combs.cell_combs, names=['center', 'partner'])
        return pd.DataFrame({
            'observed': self.observed,
            'expected': self.expected(),
            'std': self.std(),
            'zscore': self.zscore(),
            'pvalue': pvalue,
            'direction': direction,
            'significant': np.where(pvalue < pval, direction, 0.0),
        }, index=index)


# ========== Public tests ==========

def run_bootstrap(
    types,
    neighbors: Union[dict, NeighborGraph],
    combs: CellCombs,
    times: int = 500,
    ignore_self: bool = False,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    config: Optional[BootstrapConfig] = None,
) -> BootstrapResult:
    """
    Count once on the real labels, then `times` times on shuffled labels.

    See `bootstrap` for the parameters. Returns the full BootstrapResult
    instead of the reduced per-pair values.
    """
    cfg = _resolve_config(
        config, times=times, ignore_self=ignore_self, seed=seed, n_jobs=n_jobs,
    )
    if not isinstance(combs, CellCombs):
        raise ValidationError('combs', "a CellCombs registry")

    labels = validate_types(types)
    codes = label_codes(labels, combs.cell_types)
    graph = resolve_graph(neighbors, len(labels), cfg.ignore_self)

    observed = _count_codes(codes, graph, combs)

    print(f"  Running {cfg.times} permutations...")
    null = run_permutations(
        codes, graph, combs,
        times=cfg.times, seed=cfg.seed, n_jobs=cfg.n_jobs, chunk_size=cfg.chunk_size,
    )

    n_flat = int((np.ptp(null, axis=0) == 0).sum())
    if n_flat:
        logger.warning("%d combination(s) have a constant null distribution", n_flat)

    return BootstrapResult(combs=combs, observed=observed, null=null)


def bootstrap(
    types,
    neighbors: Union[dict, NeighborGraph],
    combs: CellCombs,
    times: int = 500,
    pval: float = 0.05,
    method: str = 'pval',
    ignore_self: bool = False,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    config: Optional[BootstrapConfig] = None,
) -> List[Tuple[Pair, float]]:
    """
    Permutation test for every cell type combination.

    If method is 'pval', 1.0 means association, -1.0 means avoidance
    and 0.0 means no significant relationship. If method is 'zscore',
    the result is the exact z-score value.

    Parameters
    ----------
    types : list of str
        The type of all the cells.
    neighbors : dict or NeighborGraph
        e.g. {1: [4, 5], 2: [6, 7]}: cell at index 1 has neighbor cells
        at index 4 and 5.
    combs : CellCombs
        Registry from build_combinations.
    times : int
        How many times to perform bootstrap.
    pval : float
        The threshold of p-value.
    method : str
        'pval' or 'zscore'.
    ignore_self : bool
        Whether to drop a cell from its own neighbor list.
    seed : int, optional
        Session seed.
    n_jobs : int
        Parallel workers (-1 = all cores).
    config : BootstrapConfig, optional
        Overrides all of the settings above.

    Returns
    -------
    list of tuple
        e.g. (('a', 'b'), 1.0), in registry order.
    """
    cfg = _resolve_config(
        config, times=times, pval=pval, method=method,
        ignore_self=ignore_self, seed=seed, n_jobs=n_jobs,
    )
    result = run_bootstrap(types, neighbors, combs, config=cfg)
    values = result.to_list(method=cfg.method, pval=cfg.pval)

    print(f"  ✓ Bootstrap: {combs.n_types} types, {len(combs)} combinations, "
          f"{cfg.times} permutations (method={cfg.method})")

    return values


def comb_bootstrap(
    x_status,
    y_status,
    neighbors: Union[dict, NeighborGraph],
    times: int = 500,
    ignore_self: bool = False,
    seed: Optional[int] = None,
    n_jobs: int = 1,
    config: Optional[BootstrapConfig] = None,
) -> float:
    """
    Bootstrap between two types.

    If you want to test co-localization between protein X and Y, first
    determine if the cell is X-positive and/or Y-positive. True is
    considered as positive and will be counted.

    Parameters
    ----------
    x_status : list of bool
        If cell is type x.
    y_status : list of bool
        If cell is type y. This is the vector that gets shuffled.
    neighbors : dict or NeighborGraph
        e.g. {1: [4, 5], 2: [6, 7]}.
    times : int
        How many times to perform bootstrap.
    ignore_self : bool
        Whether to consider self as a neighbor.
    seed : int, optional
        Session seed.
    n_jobs : int
        Parallel workers (-1 = all cores).
    config : BootstrapConfig, optional
        Overrides the settings above (pval and method are unused).

    Returns
    -------
    float
        The z-score for the spatial relationship between X and Y.
    """
    cfg = _resolve_config(
        config, times=times, ignore_self=ignore_self, seed=seed, n_jobs=n_jobs,
    )
    x = validate_status(x_status, 'x_status')
    y = validate_status(y_status, 'y_status')
    if len(x) != len(y):
        raise ValidationError('y_status', f"list of bool with {len(x)} entries (same as x_status)")
    graph = resolve_graph(neighbors, len(x), cfg.ignore_self)

    real = _comb_count(x, y, graph)
    null = run_comb_permutations(
        x, y, graph,
        times=cfg.times, seed=cfg.seed, n_jobs=cfg.n_jobs, chunk_size=cfg.chunk_size,
    )

    return float(zscore_reduce(np.array([real]), null[:, np.newaxis])[0])


def neighborhood_enrichment(
    cell_meta: pd.DataFrame,
    cell_type_col: str,
    radius: float,
    x_col: str = 'x',
    y_col: str = 'y',
    order: bool = False,
    times: int = 500,
    pval: float = 0.05,
    ignore_self: bool = False,
    seed: Optional[int] = None,
    n_jobs: int = 1,
) -> pd.DataFrame:
    """
    Test whether cell type pairs co-locate more/less than expected.

    Convenience wrapper over the full pipeline for cells held in a
    DataFrame: radius graph, combination registry, permutation test.

    Parameters
    ----------
    cell_meta : pd.DataFrame
        One row per cell.
    cell_type_col : str
        Column with cell type labels (strings).
    radius : float
        Neighbor search radius, in coordinate units.
    x_col, y_col : str
        Coordinate columns.
    order : bool
        If True, (A, B) and (B, A) are tested separately.
    times, pval, ignore_self, seed, n_jobs
        As in `bootstrap`.

    Returns
    -------
    pd.DataFrame
        Indexed by (center, partner) with columns observed, expected, std,
        zscore, pvalue, direction, significant.
    """
    if not isinstance(cell_meta, pd.DataFrame):
        raise ValidationError('cell_meta', "a pandas DataFrame")
    for arg, col in (('cell_type_col', cell_type_col), ('x_col', x_col), ('y_col', y_col)):
        if col not in cell_meta.columns:
            raise ValidationError(arg, f"a column of cell_meta ('{col}' not found)")

    cfg = BootstrapConfig(
        times=times, pval=pval, ignore_self=ignore_self, seed=seed, n_jobs=n_jobs,
    )
    labels = validate_types(cell_meta[cell_type_col].tolist(), name='cell_type_col')
    for arg, col in (('x_col', x_col), ('y_col', y_col)):
        if cell_meta[col].dtype.kind not in 'iuf':
            raise ValidationError(arg, f"a numeric column of cell_meta ('{col}' is {cell_meta[col].dtype})")
    coords = validate_points(cell_meta[[x_col, y_col]].to_numpy(), name='x_col/y_col')

    graph = build_radius_graph(coords, radius)
    combs = build_combinations(labels, order=order)
    result = run_bootstrap(labels, graph, combs, config=cfg)
    table = result.to_frame(pval=cfg.pval)

    # Report top enriched/depleted pairs
    print(f"  ✓ Neighborhood enrichment: {combs.n_types} types, "
          f"{cfg.times} permutations")
    if len(table) > 0:
        z = table['zscore']
        print(f"    Top enriched:  {z.idxmax()} (z={z.max():.2f})")
        print(f"    Top depleted:  {z.idxmin()} (z={z.min():.2f})")

    return table


# host-facing aliases
boolean_bootstrap = comb_bootstrap
