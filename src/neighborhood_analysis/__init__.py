# src/neighborhood_analysis/__init__.py

"""
neighborhood_analysis - Cell type co-localization from radius neighbors
"""

# Configuration and errors
from .config import (
    BootstrapConfig,
    NeighborhoodError,
    ValidationError,
    ConsistencyError,
)

# Core operations
from .spatial import (
    RadiusIndex,
    NeighborGraph,
    CellCombs,
    BootstrapResult,
    get_neighbors,
    build_radius_graph,
    build_combinations,
    count_neighbors,
    comb_count_neighbors,
    run_bootstrap,
    bootstrap,
    comb_bootstrap,
    boolean_bootstrap,
    neighborhood_enrichment,
)

# Import submodules
from . import spatial

# host-facing name for the radius search
neighbors = get_neighbors

__version__ = '0.3.0'

__all__ = [
    # Configuration and errors
    'BootstrapConfig',
    'NeighborhoodError',
    'ValidationError',
    'ConsistencyError',

    # Core classes
    'RadiusIndex',
    'NeighborGraph',
    'CellCombs',
    'BootstrapResult',

    # Core operations
    'get_neighbors',
    'neighbors',
    'build_radius_graph',
    'build_combinations',
    'count_neighbors',
    'comb_count_neighbors',
    'run_bootstrap',
    'bootstrap',
    'comb_bootstrap',
    'boolean_bootstrap',
    'neighborhood_enrichment',

    # Submodules
    'spatial',
]
