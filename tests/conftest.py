"""
conftest.py - Shared test fixtures for neighborhood_analysis

pytest reads this file before running any test. Every fixture defined
here is available to all test files by name, without importing it.

    @pytest.fixture          ← marks a reusable setup block
    def my_fixture():
        return something_useful

    def test_something(my_fixture):   ← pytest injects it by name
        assert my_fixture == expected
"""

from collections import Counter

import numpy as np
import pandas as pd
import pytest

# ===========================================================================
# Constants — the size of our fake tissue
# ===========================================================================

N_CELLS = 80  # cells scattered at random
GRID = 10  # side of the segregated grid (GRID × GRID cells)


# ===========================================================================
# Fixture 1: the four-corner square
# ===========================================================================


@pytest.fixture
def square():
    """
    4 points at (0,0), (0,1), (1,0), (1,1), labeled A, A, B, B.

    The largest pairwise distance is √2 ≈ 1.41, so at radius 1.5
    every point is a neighbor of all four.
    """
    points = [(0.0, 0.0), (0.0, 1.0), (1.0, 0.0), (1.0, 1.0)]
    types = ["A", "A", "B", "B"]
    return points, types


# ===========================================================================
# Fixture 2: random tissue with three cell types
# ===========================================================================


@pytest.fixture
def random_tissue():
    """
    80 cells uniformly scattered in a 100×100 field, three cell types.

    No spatial structure: useful for comparing the fast counter
    against the scalar reference on messy neighbor lists.
    """
    rng = np.random.default_rng(7)
    points = rng.uniform(0, 100, (N_CELLS, 2))
    types = rng.choice(["T", "B", "Tumor"], N_CELLS).tolist()
    return points, types


# ===========================================================================
# Fixture 3: segregated grid (left half A, right half B)
# ===========================================================================


@pytest.fixture
def segregated_grid():
    """
    10×10 unit grid. Columns 0-4 are type A, columns 5-9 type B.

    At radius 1.1 each cell sees itself and its 4-neighbors, so A cells
    mostly see A cells: (A, A) is enriched and (A, B) depleted.
    """
    xs, ys = np.meshgrid(np.arange(GRID), np.arange(GRID), indexing="ij")
    xs, ys = xs.ravel().astype(float), ys.ravel().astype(float)
    types = ["A" if x < GRID / 2 else "B" for x in xs]
    cell_meta = pd.DataFrame(
        {"x": xs, "y": ys, "cell_type": types},
        index=[f"cell_{i}" for i in range(len(xs))],
    )
    return cell_meta


# ===========================================================================
# Fixture 4: scalar ground truth
# ===========================================================================


@pytest.fixture
def scalar_count():
    """
    Straightforward per-cell implementation of the neighbor counter.

    For each center cell, count its neighbors' types with a Counter and
    append one observation to every pair routed from its type. The
    vectorized counter must agree with this exactly.
    """

    def _count(types, neighbors, combs, ignore_self=False):
        storage = {comb: [] for comb in combs.cell_combs}
        for k, v in neighbors.items():
            cent = types[k]
            neigh = Counter(types[i] for i in v if not (ignore_self and i == k))
            for comb in combs.cell_relationships[cent]:
                key = comb if comb in storage else (comb[1], comb[0])
                storage[key].append(neigh.get(comb[1], 0))
        return {
            comb: (sum(obs) / len(obs) if obs else 0.0)
            for comb, obs in storage.items()
        }

    return _count
