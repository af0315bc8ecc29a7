"""
Tests for hotspot region growth.
"""

import numpy as np
import pytest

from biodiv_hotspots.grid import GridIndex
from biodiv_hotspots.region import grow_region, region_positions


def _grid_3x3():
    return GridIndex([x * 1000 + y for x in range(1, 4) for y in range(1, 4)])


class TestRegionGrowth:
    """Connected subtop regions under the Moore neighbourhood."""

    def test_diagonal_cells_connect(self):
        grid = GridIndex([1001, 2002, 3003])
        subtop = [True, True, True]
        assert grow_region(grid, 1001, subtop) == {1001, 2002, 3003}

    def test_stops_at_non_subtop_cell(self):
        grid = GridIndex([1001, 2001, 3001, 4001])
        subtop = [True, True, False, True]
        assert grow_region(grid, 1001, subtop) == {1001, 2001}

    def test_never_crosses_gap(self):
        # 4001 is subtop but only reachable through 3001
        grid = GridIndex([1001, 2001, 3001, 4001])
        subtop = [True, False, False, True]
        assert grow_region(grid, 1001, subtop) == {1001}

    def test_center_included_when_not_subtop(self):
        grid = GridIndex([1001, 2001, 3001])
        subtop = [False, True, True]
        assert grow_region(grid, 1001, subtop) == {1001, 2001, 3001}

    def test_isolated_center(self):
        grid = _grid_3x3()
        subtop = np.zeros(len(grid), dtype=bool)
        assert grow_region(grid, 2002, subtop) == {2002}

    def test_whole_block(self):
        grid = _grid_3x3()
        subtop = np.ones(len(grid), dtype=bool)
        assert grow_region(grid, 1001, subtop) == set(grid.cells.tolist())

    def test_positions_sorted(self):
        grid = GridIndex([3001, 2001, 1001])
        assert region_positions(grid, 2, [True, True, True]) == [0, 1, 2]

    def test_length_mismatch_raises(self):
        grid = GridIndex([1001, 2001])
        with pytest.raises(ValueError):
            region_positions(grid, 0, [True])
