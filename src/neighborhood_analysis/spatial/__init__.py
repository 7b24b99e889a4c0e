# src/neighborhood_analysis/spatial/__init__.py

"""
Radius-neighbor co-occurrence analysis for cell types.

Modules
-------
- graph: Radius search (KD-tree) and neighbor graphs
- combinations: Cell type pair registry (ordered / unordered)
- counting: Mean neighbor counts per cell type pair
- permutation: Label-shuffling permutation tests
- shared: Input validation and numeric helpers

Quick Start
-----------
>>> import neighborhood_analysis as na
>>>
>>> # 1. Neighbors within 30 units of every cell (self included)
>>> neighbors = na.get_neighbors(points, r=30)
>>>
>>> # 2. Register the cell type pairs once
>>> combs = na.CellCombs(cell_types, order=False)
>>>
>>> # 3. Test every pair: 1.0 association, -1.0 avoidance, 0.0 neither
>>> result = combs.bootstrap(cell_types, neighbors, times=500, pval=0.05)
>>>
>>> # Or exact z-scores
>>> result = combs.bootstrap(cell_types, neighbors, method='zscore')
>>>
>>> # Two boolean markers (e.g. protein X / protein Y positive)
>>> z = na.comb_bootstrap(x_status, y_status, neighbors, times=500)

Graph Construction
------------------
RadiusIndex
    Static KD-tree answering radius queries
get_neighbors
    {point: [neighbors]} for every point
NeighborGraph
    Sparse form of a neighbor mapping
build_radius_graph
    Radius search straight to a NeighborGraph

Combinations
------------
CellCombs
    Pair registry with a bootstrap method
build_combinations
    Functional constructor for CellCombs

Counting
--------
count_neighbors
    Mean neighbor count per pair for one labeling
comb_count_neighbors
    Raw x/y co-occurrence count

Permutation Tests
-----------------
bootstrap
    Per-pair significance call or z-score
run_bootstrap
    Same, returning the full BootstrapResult
comb_bootstrap
    z-score for two boolean markers
neighborhood_enrichment
    DataFrame in, DataFrame out
"""

# Graph construction
from .graph import (
    RadiusIndex,
    NeighborGraph,
    get_neighbors,
    build_radius_graph,
)

# Combinations
from .combinations import (
    CellCombs,
    build_combinations,
)

# Counting
from .counting import (
    count_neighbors,
    comb_count_neighbors,
)

# Permutation tests
from .permutation import (
    BootstrapResult,
    run_permutations,
    run_comb_permutations,
    permuted_labelings,
    zscore_reduce,
    empirical_pvalues,
    pval_reduce,
    run_bootstrap,
    bootstrap,
    comb_bootstrap,
    boolean_bootstrap,
    neighborhood_enrichment,
)

from . import shared

__all__ = [
    # Classes
    'RadiusIndex',
    'NeighborGraph',
    'CellCombs',
    'BootstrapResult',

    # Graph construction
    'get_neighbors',
    'build_radius_graph',

    # Combinations
    'build_combinations',

    # Counting
    'count_neighbors',
    'comb_count_neighbors',

    # Permutation tests
    'run_permutations',
    'run_comb_permutations',
    'permuted_labelings',
    'zscore_reduce',
    'empirical_pvalues',
    'pval_reduce',
    'run_bootstrap',
    'bootstrap',
    'comb_bootstrap',
    'boolean_bootstrap',
    'neighborhood_enrichment',

    'shared',
]
