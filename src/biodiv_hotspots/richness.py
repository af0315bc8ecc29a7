"""
Species richness per grid cell.

Richness of a cell for a group is the number of distinct accepted species of
that group observed in the cell. Every cell of the grid gets a value; cells
without qualifying observations get 0.
"""

from typing import List, Optional

import pandas as pd

from biodiv_hotspots.grid import GridIndex, encode_cells
from biodiv_hotspots.schemas import (
    GRIDCELL_COL,
    GROUP_COL,
    OBSERVATIONS_SCHEMA,
    SPECIES_COL,
    SPECIES_SCHEMA,
    SchemaError,
    validate_schema,
)

DEFAULT_GROUP = "Biodiversity"


# =============================================================================
# Input preparation
# =============================================================================

def prepare_observations(
    df: pd.DataFrame,
    species_col: str = "species",
    x_col: str = "x",
    y_col: str = "y",
    gridcell_col: Optional[str] = None,
) -> pd.DataFrame:
    """
    Normalise an observation table to `species, gridcell`.

    Observations come either with x/y coordinates, which are encoded into
    cell ids, or with a ready-made gridcell column.

    Args:
        df: Raw observation table
        species_col: Column holding the species id
        x_col: Column holding the x coordinate (ignored with gridcell_col)
        y_col: Column holding the y coordinate (ignored with gridcell_col)
        gridcell_col: Column holding composite cell ids, if present

    Returns:
        DataFrame with `species` and integer `gridcell` columns

    Raises:
        SchemaError: If required columns are missing or hold NA values
    """
    if not isinstance(df, pd.DataFrame):
        raise SchemaError(f"Observations must be a DataFrame, got {type(df).__name__}")

    needed = [species_col] + ([gridcell_col] if gridcell_col else [x_col, y_col])
    missing = [c for c in needed if c not in df.columns]
    if missing:
        raise SchemaError(f"Observation table is missing columns: {missing}")

    for col in needed[1:]:
        if df[col].isna().any():
            raise SchemaError(f"Observation column '{col}' has NA values")
        if not pd.api.types.is_numeric_dtype(df[col]) or pd.api.types.is_bool_dtype(df[col]):
            raise SchemaError(f"Observation column '{col}' must be numeric, got {df[col].dtype}")

    if gridcell_col:
        cells = df[gridcell_col].astype("int64").to_numpy()
    else:
        cells = encode_cells(df[x_col].to_numpy(), df[y_col].to_numpy())

    obs = pd.DataFrame({
        SPECIES_COL: df[species_col].to_numpy(),
        GRIDCELL_COL: cells,
    })
    validate_schema(obs, OBSERVATIONS_SCHEMA, context="observations")
    return obs


def prepare_species_table(
    species_table: Optional[pd.DataFrame],
    observations: pd.DataFrame,
    species_col: str = "species",
    group_col: Optional[str] = "group",
) -> pd.DataFrame:
    """
    Normalise the accepted species table to `species, group`.

    Without a table every observed species is accepted into DEFAULT_GROUP,
    and the result has no rows when nothing was observed.
    A table without a group column puts all its species into DEFAULT_GROUP.

    Args:
        species_table: Raw accepted species table, or None
        observations: Prepared observations (used when species_table is None)
        species_col: Column holding the species id
        group_col: Column holding the group label

    Returns:
        DataFrame with `species` and string `group` columns
    """
    if species_table is None:
        species = pd.unique(observations[SPECIES_COL])
        return pd.DataFrame({SPECIES_COL: species, GROUP_COL: DEFAULT_GROUP})

    if species_col not in species_table.columns:
        raise SchemaError(f"Species table is missing column: {species_col}")
    groups = (
        species_table[group_col]
        if group_col and group_col in species_table.columns
        else DEFAULT_GROUP
    )
    table = pd.DataFrame({
        SPECIES_COL: species_table[species_col].to_numpy(),
        GROUP_COL: groups if isinstance(groups, str) else groups.to_numpy(),
    })

    validate_schema(table, SPECIES_SCHEMA, context="accepted species")
    table[GROUP_COL] = table[GROUP_COL].astype(str)
    return table.drop_duplicates().reset_index(drop=True)


def list_groups(species_table: pd.DataFrame) -> List[str]:
    """Groups in order of first appearance."""
    return [str(g) for g in pd.unique(species_table[GROUP_COL])]


def filter_accepted(observations: pd.DataFrame, species_table: pd.DataFrame) -> pd.DataFrame:
    """Drop observations of species that are not in the accepted species table."""
    return observations[observations[SPECIES_COL].isin(species_table[SPECIES_COL])]


# =============================================================================
# Richness
# =============================================================================

def compute_richness(
    observations: pd.DataFrame,
    species_table: pd.DataFrame,
    grid: GridIndex,
    group: str,
    logger=None,
) -> pd.Series:
    """
    Count distinct accepted species of one group per grid cell.

    Args:
        observations: Prepared observations (`species, gridcell`)
        species_table: Prepared accepted species (`species, group`)
        grid: Registry of all cells; defines the rows of the result
        group: Group whose species are counted
        logger: Optional logger for progress messages

    Returns:
        int64 Series indexed by gridcell in grid order, named after the group
    """
    obs = filter_accepted(observations, species_table[species_table[GROUP_COL] == group])

    outside = ~obs[GRIDCELL_COL].isin(grid.cells)
    if outside.any():
        message = f"{group}: {int(outside.sum())} observations fall outside the grid and are ignored"
        if logger:
            logger.warning(message)
        else:
            print(message)

    counts = obs.groupby(GRIDCELL_COL)[SPECIES_COL].nunique()
    richness = counts.reindex(grid.cells, fill_value=0).astype("int64")
    richness.index.name = GRIDCELL_COL
    richness.name = group

    if logger:
        logger.debug(
            f"{group}: richness computed for {len(richness):,} cells "
            f"({int((richness > 0).sum()):,} with species, max {int(richness.max())})"
        )

    return richness
