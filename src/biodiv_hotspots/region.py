"""
Grow a hotspot region from its center cell.

Starting at the center, each round examines the Moore neighbours of the
cells found in the previous round and adds every subtop neighbour not yet in
the region. Growth stops when a round finds nothing new. The center belongs
to the region whether or not it is subtop itself; no other non-subtop cell
is ever entered.
"""

from typing import List, Set

import numpy as np

from biodiv_hotspots.grid import GridIndex


def region_positions(grid: GridIndex, center_pos: int, subtop) -> List[int]:
    """
    Positions of all cells in the region grown from center_pos.

    Args:
        grid: Registry of all cells
        center_pos: Position of the hotspot center
        subtop: Boolean per position, aligned with the grid order

    Returns:
        Sorted positions, center included
    """
    subtop = np.asarray(subtop, dtype=bool)
    if subtop.shape[0] != len(grid):
        raise ValueError(
            f"Subtop flags cover {subtop.shape[0]} cells, grid has {len(grid)}"
        )

    region = {center_pos}
    frontier = [center_pos]

    while frontier:
        next_frontier = []
        for pos in frontier:
            for npos in grid.neighbor_positions(pos):
                if subtop[npos] and npos not in region:
                    region.add(npos)
                    next_frontier.append(npos)
        frontier = next_frontier

    return sorted(region)


def grow_region(grid: GridIndex, center_cell: int, subtop) -> Set[int]:
    """Cell ids of the region grown from center_cell (see region_positions)."""
    positions = region_positions(grid, grid.position(center_cell), subtop)
    return {int(grid.cells[p]) for p in positions}
