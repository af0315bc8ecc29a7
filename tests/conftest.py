"""
Shared fixtures for hotspot tests.

Most tests describe a grid by the richness each cell should end up with;
`observations_for` turns that into an observation table with species
1..r in a cell of richness r.
"""

import pandas as pd
import pytest

from biodiv_hotspots.grid import decode_cell


def observations_for(richness_by_cell: dict) -> pd.DataFrame:
    """Observation table (species, x, y) giving each cell the requested richness."""
    rows = []
    for cell, richness in richness_by_cell.items():
        x, y = decode_cell(cell)
        for species in range(1, richness + 1):
            rows.append({"species": species, "x": x, "y": y})
    return pd.DataFrame(rows, columns=["species", "x", "y"])


@pytest.fixture
def row_grid():
    """Five cells in a row at y=100: x = 1..5."""
    return [1100, 2100, 3100, 4100, 5100]


@pytest.fixture
def species_two_groups():
    """Species 1-8; odd ids in Group1, even ids in Group2."""
    return pd.DataFrame({
        "species": list(range(1, 9)),
        "group": ["Group1" if s % 2 else "Group2" for s in range(1, 9)],
    })
