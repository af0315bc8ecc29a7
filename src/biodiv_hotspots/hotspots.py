"""
Hotspot detection per species group.

For every group the richest cell not yet part of a hotspot becomes the next
hotspot center. With a subtop mode active, the center grows into the
connected region of subtop cells around it and the whole region takes the
center's hotspot id. This repeats until the requested number of hotspots is
reached; cells tied with the last center's richness each become a center of
their own, so the final count can exceed the request.

Region growth overwrites ids unconditionally. When a later center reaches,
through subtop cells, a region claimed by an earlier hotspot, those cells
take the later id (last writer wins).
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from biodiv_hotspots.config import HotspotConfig
from biodiv_hotspots.grid import GridIndex
from biodiv_hotspots.region import region_positions
from biodiv_hotspots.richness import (
    DEFAULT_GROUP,
    compute_richness,
    list_groups,
    prepare_observations,
    prepare_species_table,
)
from biodiv_hotspots.schemas import (
    GRID_SCHEMA,
    GRIDCELL_COL,
    SchemaError,
    hotspot_col,
    hotspot_id_col,
    result_schema,
    subtop_col,
    validate_group_names,
    validate_schema,
)
from biodiv_hotspots.thresholds import MIN_RICHNESS, GroupThresholds, derive_thresholds


def _report(message: str, logger=None, level: str = "info") -> None:
    """Send a message to the logger, or print it when there is none."""
    if logger:
        getattr(logger, level)(message)
    else:
        print(message)


# =============================================================================
# Per-group state
# =============================================================================

@dataclass
class GroupState:
    """
    Mutable hotspot state of one group, aligned with the grid order.

    Attributes:
        group: Group name
        richness: Richness per cell
        is_subtop: Subtop flag per cell, None when no subtop mode is active
        is_center: Hotspot center flag per cell
        hotspot_id: Hotspot id per cell (0 = not in a hotspot)
        n_hotspots: Hotspot ids handed out so far
        target: Hotspot count the loop is working towards (grows with ties)
        exhausted: True if candidates ran out before the target was met
        thresholds: Thresholds the flags were derived from
    """
    group: str
    richness: np.ndarray
    is_subtop: Optional[np.ndarray] = None
    is_center: np.ndarray = field(default=None)
    hotspot_id: np.ndarray = field(default=None)
    n_hotspots: int = 0
    target: int = 0
    exhausted: bool = False
    thresholds: Optional[GroupThresholds] = None

    def __post_init__(self):
        self.richness = np.asarray(self.richness, dtype=np.int64)
        if self.is_subtop is not None:
            self.is_subtop = np.asarray(self.is_subtop, dtype=bool)
        self.reset()

    def reset(self) -> None:
        """No centers, every cell outside any hotspot."""
        self.is_center = np.zeros(len(self.richness), dtype=bool)
        self.hotspot_id = np.zeros(len(self.richness), dtype=np.int64)
        self.n_hotspots = 0
        self.target = 0
        self.exhausted = False

    @property
    def subtop_active(self) -> bool:
        return self.is_subtop is not None

    def unclaimed(self) -> np.ndarray:
        return self.hotspot_id == 0

    def to_frame(self) -> pd.DataFrame:
        """Result columns of this group, in output order."""
        data = {
            self.group: self.richness,
            hotspot_col(self.group): self.is_center,
        }
        if self.subtop_active:
            data[subtop_col(self.group)] = self.is_subtop
        data[hotspot_id_col(self.group)] = self.hotspot_id
        return pd.DataFrame(data)


# =============================================================================
# Orchestration
# =============================================================================

def next_center(state: GroupState) -> Optional[int]:
    """
    Position of the richest unclaimed cell, or None if none is left.

    Only cells with richness >= 1 are candidates. Ties go to the first
    position in the grid order.
    """
    candidates = state.unclaimed() & (state.richness >= MIN_RICHNESS)
    if not candidates.any():
        return None
    masked = np.where(candidates, state.richness, -1)
    return int(np.argmax(masked))


def assign_hotspots(
    grid: GridIndex,
    state: GroupState,
    number_of_hotspots: int,
    logger=None,
) -> GroupState:
    """
    Pick hotspot centers and grow their regions, updating state in place.

    Args:
        grid: Registry of all cells
        state: Group state holding richness and subtop flags
        number_of_hotspots: Requested hotspot count
        logger: Optional logger for diagnostics

    Returns:
        The same state, for chaining
    """
    state.reset()
    state.target = number_of_hotspots

    while state.n_hotspots < state.target:
        center = next_center(state)
        if center is None:
            state.exhausted = True
            _report(
                f"{state.group}: only {state.n_hotspots} of {state.target} hotspots could be "
                f"placed; no unclaimed cell with richness >= {MIN_RICHNESS} is left",
                logger,
                level="warning",
            )
            break

        state.n_hotspots += 1
        hotspot_id = state.n_hotspots
        state.is_center[center] = True
        state.hotspot_id[center] = hotspot_id

        if state.subtop_active:
            region = region_positions(grid, center, state.is_subtop)
            state.hotspot_id[region] = hotspot_id

        # Cells tied with this center's richness become centers too
        if hotspot_id >= number_of_hotspots:
            tied = state.unclaimed() & (state.richness == state.richness[center])
            if tied.any():
                state.target += 1

    return state


def run_group(
    grid: GridIndex,
    observations: pd.DataFrame,
    species_table: pd.DataFrame,
    group: str,
    config: HotspotConfig,
    logger=None,
) -> GroupState:
    """
    Richness, thresholds and hotspots for one group.

    Args:
        grid: Registry of all cells
        observations: Prepared observations (`species, gridcell`)
        species_table: Prepared accepted species (`species, group`)
        group: Group to process
        config: Validated run parameters
        logger: Optional logger

    Returns:
        Finished GroupState
    """
    richness = compute_richness(observations, species_table, grid, group, logger=logger)
    thresholds = derive_thresholds(
        richness.to_numpy(),
        config.number_of_hotspots,
        subtop_mode=config.subtop_mode,
        sub_top=config.sub_top,
    )

    state = GroupState(
        group=group,
        richness=richness.to_numpy(),
        is_subtop=thresholds.subtop_mask,
        thresholds=thresholds,
    )
    assign_hotspots(grid, state, config.number_of_hotspots, logger=logger)

    if config.print_progress:
        subtop = f", subtop >= {thresholds.subtop:g}" if thresholds.subtop_active else ""
        _report(
            f"{group}: {state.n_hotspots} hotspots "
            f"(threshold {thresholds.hotspot}{subtop})",
            logger,
        )

    return state


@dataclass
class HotspotRun:
    """Grid, per-group states and parameters of one hotspot run."""
    grid: GridIndex
    config: HotspotConfig
    groups: List[str]
    states: Dict[str, GroupState]

    def to_frame(self) -> pd.DataFrame:
        """
        One row per grid cell: gridcell, x, y, then per group its richness,
        center flag, subtop flag (subtop modes only) and hotspot id.
        """
        frames = [self.grid.to_frame()]
        frames.extend(self.states[g].to_frame() for g in self.groups)
        result = pd.concat(frames, axis=1)

        if not self.config.return_tf:
            bool_cols = result.select_dtypes(include="bool").columns
            result[bool_cols] = result[bool_cols].astype("int64")

        validate_schema(
            result,
            result_schema(self.groups, self.config.subtop_active, self.config.return_tf),
            context="hotspot result",
        )
        return result


def _prepare_grid(gridcells) -> GridIndex:
    if gridcells is None:
        raise SchemaError("A grid cell list is required")
    if isinstance(gridcells, pd.DataFrame):
        if GRIDCELL_COL not in gridcells.columns:
            raise SchemaError(f"Grid cell table is missing column: {GRIDCELL_COL}")
        values = gridcells[GRIDCELL_COL].to_numpy()
    else:
        values = np.asarray(list(gridcells))

    validate_schema(pd.DataFrame({GRIDCELL_COL: values}), GRID_SCHEMA, context="grid cells")
    return GridIndex(values)


def detect_hotspots(
    observations: pd.DataFrame,
    gridcells: Iterable[int],
    species_table: Optional[pd.DataFrame] = None,
    number_of_hotspots: int = 10,
    subtop_mode: str = "none",
    sub_top: int = 250,
    return_tf: bool = True,
    print_progress: bool = False,
    logger=None,
) -> HotspotRun:
    """
    Run hotspot detection for every species group.

    Parameters and tables are validated before anything is computed.

    Args:
        observations: Table with `species` and either `gridcell` or `x`/`y`
        gridcells: Every cell of interest, zero-observation cells included.
            The order decides ties between equally rich cells.
        species_table: Accepted species with `species` and optional `group`
            columns. None accepts every observed species into one group.
        number_of_hotspots: Hotspots per group; ties can add more
        subtop_mode: "none", "amount", "sd" or "2sd" (unknown -> "none")
        sub_top: Number of subtop cells for "amount"
        return_tf: Flags as booleans (True) or 0/1 integers (False)
        print_progress: Report progress per group
        logger: Optional logger (print is used when None)

    Returns:
        HotspotRun with a GroupState per group

    Raises:
        ConfigError: Invalid parameters
        SchemaError: Missing or malformed tables
        CellCodeError: Coordinates outside the cell id range
    """
    config = HotspotConfig(
        number_of_hotspots=number_of_hotspots,
        subtop_mode=subtop_mode,
        sub_top=sub_top,
        return_tf=return_tf,
        print_progress=print_progress,
    )

    grid = _prepare_grid(gridcells)

    if observations is None:
        raise SchemaError("An observation table is required")
    if GRIDCELL_COL in getattr(observations, "columns", []):
        obs = prepare_observations(observations, gridcell_col=GRIDCELL_COL)
    else:
        obs = prepare_observations(observations)

    species = prepare_species_table(species_table, obs)
    groups = list_groups(species) if species_table is not None else [DEFAULT_GROUP]
    validate_group_names(groups)

    states = {}
    for group in groups:
        if config.print_progress:
            _report(f"Calculating hotspots for {group}", logger)
        states[group] = run_group(grid, obs, species, group, config, logger=logger)

    if config.print_progress:
        _report("Done!", logger)

    return HotspotRun(grid=grid, config=config, groups=groups, states=states)


def compute_hotspot_status(
    observations: pd.DataFrame,
    gridcells: Iterable[int],
    species_table: Optional[pd.DataFrame] = None,
    number_of_hotspots: int = 10,
    subtop_mode: str = "none",
    sub_top: int = 250,
    return_tf: bool = True,
    print_progress: bool = False,
    logger=None,
) -> pd.DataFrame:
    """
    Hotspot status table: one row per grid cell.

    Same arguments as detect_hotspots; see HotspotRun.to_frame for the columns.
    """
    run = detect_hotspots(
        observations,
        gridcells,
        species_table=species_table,
        number_of_hotspots=number_of_hotspots,
        subtop_mode=subtop_mode,
        sub_top=sub_top,
        return_tf=return_tf,
        print_progress=print_progress,
        logger=logger,
    )
    return run.to_frame()
