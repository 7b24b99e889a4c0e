# src/neighborhood_analysis/spatial/shared/utils.py

"""
utils.py - Shared utilities for spatial analysis

Conversion of user-facing inputs (lists, dicts, arrays) into the arrays
used internally, with one descriptive error per malformed argument.
"""
from __future__ import annotations

from collections.abc import Mapping, Sequence
from numbers import Integral, Real
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from ...config import ValidationError


def _is_int(value) -> bool:
    return isinstance(value, Integral) and not isinstance(value, (bool, np.bool_))


def _is_real(value) -> bool:
    return isinstance(value, Real) and not isinstance(value, (bool, np.bool_))


def _is_sequence(value) -> bool:
    """True for list-likes, False for strings and mappings."""
    if isinstance(value, (str, bytes, Mapping)):
        return False
    return isinstance(value, (Sequence, np.ndarray, pd.Series, pd.Index))


def validate_points(points, name: str = 'points') -> np.ndarray:
    """
    Convert 2D points to an (n, 2) float64 array.

    Parameters
    ----------
    points : sequence of (float, float) or np.ndarray
        Point coordinates. An empty sequence gives a (0, 2) array.
    name : str
        Argument name used in error messages.

    Returns
    -------
    np.ndarray
        Coordinates (n_points × 2)

    Examples
    --------
    >>> validate_points([(0, 0), (1.5, 2)])
    array([[0. , 0. ],
           [1.5, 2. ]])
    """
    expected = "list of (float, float)"

    if isinstance(points, pd.DataFrame):
        points = points.to_numpy()

    if isinstance(points, np.ndarray):
        if points.size == 0:
            return np.empty((0, 2), dtype=np.float64)
        if points.ndim != 2 or points.shape[1] != 2:
            raise ValidationError(name, expected)
        if points.dtype.kind not in 'iuf':
            raise ValidationError(name, expected)
        coords = points.astype(np.float64)
    else:
        if not _is_sequence(points):
            raise ValidationError(name, expected)
        for p in points:
            if not _is_sequence(p) or len(p) != 2:
                raise ValidationError(name, expected)
            if not (_is_real(p[0]) and _is_real(p[1])):
                raise ValidationError(name, expected)
        if len(points) == 0:
            return np.empty((0, 2), dtype=np.float64)
        coords = np.asarray(points, dtype=np.float64)

    if not np.all(np.isfinite(coords)):
        raise ValidationError(name, f"{expected} with finite values")

    return coords


def validate_radius(r, name: str = 'r') -> float:
    """Radius must be a finite, non-negative real number."""
    if not _is_real(r) or not np.isfinite(r) or r < 0:
        raise ValidationError(name, "a finite, non-negative float")
    return float(r)


def validate_status(status, name: str) -> np.ndarray:
    """
    Convert a per-point presence flag to a boolean array.

    Only real booleans are accepted; 0/1 integers are rejected
    rather than coerced.
    """
    expected = "list of bool"

    if isinstance(status, (np.ndarray, pd.Series)):
        arr = np.asarray(status)
        if arr.ndim != 1 or (arr.size > 0 and arr.dtype != np.bool_):
            raise ValidationError(name, expected)
        return arr.astype(np.bool_)

    if not _is_sequence(status):
        raise ValidationError(name, expected)
    if not all(isinstance(v, (bool, np.bool_)) for v in status):
        raise ValidationError(name, expected)

    return np.asarray(status, dtype=np.bool_).reshape(-1)


def validate_types(types, name: str = 'types') -> List[str]:
    """Per-point labels must be a non-string sequence of strings."""
    expected = "list of string"

    if not _is_sequence(types):
        raise ValidationError(name, expected)
    labels = list(types)
    if not all(isinstance(t, str) for t in labels):
        raise ValidationError(name, expected)

    return [str(t) for t in labels]


def validate_neighbors(
    neighbors,
    n_points: Optional[int] = None,
    name: str = 'neighbors',
) -> Tuple[np.ndarray, np.ndarray, np.ndarray, int]:
    """
    Flatten a neighbor mapping into COO arrays.

    Parameters
    ----------
    neighbors : dict of int -> list of int
        e.g. {1: [4, 5], 2: [6, 7]}: point 1 has neighbors 4 and 5.
    n_points : int, optional
        Number of points. Every index must lie in [0, n_points).
        If None, inferred as the largest index + 1.
    name : str
        Argument name used in error messages.

    Returns
    -------
    rows : np.ndarray
        Center index of every (center, neighbor) entry.
    cols : np.ndarray
        Neighbor index of every entry.
    keys : np.ndarray
        Indices present as keys (the centers).
    n_points : int
    """
    expected = "a dict of int -> list of int"

    if not isinstance(neighbors, Mapping):
        raise ValidationError(name, expected)

    keys = []
    row_parts = []
    col_parts = []
    for k, v in neighbors.items():
        if not _is_int(k):
            raise ValidationError(name, expected)
        if isinstance(v, np.ndarray):
            if v.ndim != 1 or (v.size > 0 and v.dtype.kind not in 'iu'):
                raise ValidationError(name, expected)
            cols = v.astype(np.int64)
        else:
            if not _is_sequence(v) or not all(_is_int(c) for c in v):
                raise ValidationError(name, expected)
            cols = np.asarray(v, dtype=np.int64).reshape(-1)
        keys.append(int(k))
        row_parts.append(np.full(len(cols), int(k), dtype=np.int64))
        col_parts.append(cols)

    keys = np.asarray(keys, dtype=np.int64)
    rows = np.concatenate(row_parts) if row_parts else np.empty(0, dtype=np.int64)
    cols = np.concatenate(col_parts) if col_parts else np.empty(0, dtype=np.int64)

    if n_points is None:
        n_points = int(max(
            keys.max(initial=-1),
            cols.max(initial=-1),
        )) + 1

    for arr in (keys, cols):
        if arr.size and (arr.min() < 0 or arr.max() >= n_points):
            raise ValidationError(
                name, f"{expected} with indices in [0, {n_points})"
            )

    return rows, cols, keys, n_points


def safe_divide(numerator: np.ndarray,
               denominator: np.ndarray,
               fill_value: float = 0.0) -> np.ndarray:
    """
    Safely divide arrays, handling division by zero.

    Parameters
    ----------
    numerator : np.ndarray
        Numerator values
    denominator : np.ndarray
        Denominator values
    fill_value : float, default=0.0
        Value to use when denominator is zero

    Returns
    -------
    np.ndarray
        Result of division
    """
    numerator = np.asarray(numerator, dtype=np.float64)
    denominator = np.asarray(denominator, dtype=np.float64)
    with np.errstate(divide='ignore', invalid='ignore'):
        result = np.divide(numerator, denominator)
    result = np.where(denominator == 0, fill_value, result)

    return result


def label_codes(types: List[str], vocabulary: List[str], name: str = 'types') -> np.ndarray:
    """
    Encode labels as integer positions in a vocabulary.

    Labels that are not in the vocabulary are rejected: the registry
    has no combination to route their counts to.
    """
    lookup: Dict[str, int] = {t: i for i, t in enumerate(vocabulary)}
    try:
        return np.fromiter((lookup[t] for t in types), dtype=np.int64, count=len(types))
    except KeyError as e:
        raise ValidationError(
            name, f"list of string drawn from the registered types (unknown: {e.args[0]!r})"
        ) from None
