# src/neighborhood_analysis/spatial/shared/__init__.py

"""
Shared utilities for spatial analysis.

Input conversion and numeric helpers used by every spatial module.
"""

from .utils import (
    # Validation
    validate_points,
    validate_radius,
    validate_status,
    validate_types,
    validate_neighbors,
    label_codes,

    # Numeric utilities
    safe_divide,
)

__all__ = [
    # Validation
    'validate_points',
    'validate_radius',
    'validate_status',
    'validate_types',
    'validate_neighbors',
    'label_codes',

    # Numeric utilities
    'safe_divide',
]
