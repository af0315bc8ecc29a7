"""
Grid cell codec and registry.

A grid cell id is the decimal digits of x followed by the decimal digits of
y, with y always taking exactly Y_DIGITS digits (x=40, y=352 -> 40352;
x=5, y=42 -> 5042). For x >= 0 that is the same number as
x * 10**Y_DIGITS + y, which is how it is computed here. Coordinates outside
that range cannot be decoded unambiguously and are rejected when encoding.
"""

from typing import Iterable, List, Optional, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from shapely.geometry import box

from biodiv_hotspots.schemas import GRIDCELL_COL, X_COL, Y_COL

Y_DIGITS = 3
Y_BASE = 10 ** Y_DIGITS
Y_MAX = Y_BASE - 1

# Moore neighbourhood: the 8 cells sharing an edge or a corner
NEIGHBOR_OFFSETS = [
    (-1, -1), (0, -1), (1, -1),
    (-1, 0), (1, 0),
    (-1, 1), (0, 1), (1, 1),
]


class CellCodeError(ValueError):
    """Raised when coordinates or cell ids fall outside the codec range."""
    pass


# =============================================================================
# Codec
# =============================================================================

def encode_cell(x: int, y: int) -> int:
    """
    Encode grid coordinates as a cell id.

    Raises:
        CellCodeError: If x is negative or y is outside 0..999
    """
    x = int(x)
    y = int(y)
    if x < 0:
        raise CellCodeError(f"x must be >= 0, got {x}")
    if not 0 <= y <= Y_MAX:
        raise CellCodeError(f"y must be within 0..{Y_MAX}, got {y}")
    return x * Y_BASE + y


def decode_cell(cell: int) -> Tuple[int, int]:
    """Split a cell id into (x, y); the trailing three digits are y."""
    cell = int(cell)
    if cell < 0:
        raise CellCodeError(f"Cell ids must be >= 0, got {cell}")
    x, y = divmod(cell, Y_BASE)
    return x, y


def encode_cells(x, y) -> np.ndarray:
    """Vectorised encode_cell over array-likes of coordinates."""
    x = np.asarray(x, dtype=np.int64)
    y = np.asarray(y, dtype=np.int64)
    if (x < 0).any():
        raise CellCodeError(f"x must be >= 0, got min {x.min()}")
    if ((y < 0) | (y > Y_MAX)).any():
        raise CellCodeError(f"y must be within 0..{Y_MAX}, got range {y.min()}..{y.max()}")
    return x * Y_BASE + y


def decode_cells(cells) -> Tuple[np.ndarray, np.ndarray]:
    """Vectorised decode_cell; returns (x, y) arrays."""
    cells = np.asarray(cells, dtype=np.int64)
    if (cells < 0).any():
        raise CellCodeError("Cell ids must be >= 0")
    return np.divmod(cells, Y_BASE)


# =============================================================================
# Registry
# =============================================================================

class GridIndex:
    """
    Immutable registry of every cell in one analysis run.

    The order of the supplied cells is kept: positions index the per-group
    state arrays, and the first position wins richness ties when picking
    hotspot centers.
    """

    def __init__(self, cells: Iterable[int]):
        cells = np.asarray(list(cells), dtype=np.int64)
        if cells.size == 0:
            raise CellCodeError("Grid cell list is empty")
        if (cells < 0).any():
            raise CellCodeError("Cell ids must be >= 0")

        unique, counts = np.unique(cells, return_counts=True)
        if (counts > 1).any():
            dups = unique[counts > 1][:5].tolist()
            raise CellCodeError(f"Duplicate cell ids in grid cell list: {dups}")

        self.cells = cells
        self.cells.setflags(write=False)
        self.x, self.y = decode_cells(cells)
        self._position = {int(c): i for i, c in enumerate(cells)}
        self._neighbors: List[Optional[List[int]]] = [None] * len(cells)

    def __len__(self) -> int:
        return len(self.cells)

    def __contains__(self, cell) -> bool:
        return int(cell) in self._position

    def __repr__(self) -> str:
        return f"GridIndex(n_cells={len(self)})"

    def position(self, cell: int) -> int:
        """Position of a cell in the supplied order."""
        try:
            return self._position[int(cell)]
        except KeyError:
            raise KeyError(f"Cell {cell} is not in the grid") from None

    def positions(self, cells: Iterable[int]) -> np.ndarray:
        return np.array([self.position(c) for c in cells], dtype=np.int64)

    def neighbor_positions(self, pos: int) -> List[int]:
        """Positions of the existing Moore neighbours of the cell at pos."""
        cached = self._neighbors[pos]
        if cached is not None:
            return cached

        x = int(self.x[pos])
        y = int(self.y[pos])
        found = []
        for dx, dy in NEIGHBOR_OFFSETS:
            nx, ny = x + dx, y + dy
            # off the codec range, so never part of the grid
            if nx < 0 or ny < 0 or ny > Y_MAX:
                continue
            npos = self._position.get(nx * Y_BASE + ny)
            if npos is not None:
                found.append(npos)

        self._neighbors[pos] = found
        return found

    def neighbors(self, cell: int) -> List[int]:
        """Cell ids of the existing Moore neighbours of a cell."""
        return [int(self.cells[p]) for p in self.neighbor_positions(self.position(cell))]

    def to_frame(self) -> pd.DataFrame:
        """Base result table: one row per cell with its decoded coordinates."""
        return pd.DataFrame({
            GRIDCELL_COL: self.cells.copy(),
            X_COL: self.x,
            Y_COL: self.y,
        })

    def to_geodataframe(
        self,
        cell_size: float = 1.0,
        origin: Tuple[float, float] = (0.0, 0.0),
        crs: Optional[str] = None,
    ) -> gpd.GeoDataFrame:
        """
        Square cell polygons for GIS callers.

        Args:
            cell_size: Edge length of a cell in CRS units
            origin: Map coordinates of the lower-left corner of cell (0, 0)
            crs: CRS string (e.g., "EPSG:28992"); None leaves it unset

        Returns:
            GeoDataFrame with gridcell, x, y and geometry columns
        """
        ox, oy = origin
        geoms = [
            box(ox + x * cell_size, oy + y * cell_size,
                ox + (x + 1) * cell_size, oy + (y + 1) * cell_size)
            for x, y in zip(self.x.tolist(), self.y.tolist())
        ]
        return gpd.GeoDataFrame(self.to_frame(), geometry=geoms, crs=crs)
