"""
Quality assurance for hotspot result tables.

Checks are hard errors:
- every cell of the grid appears exactly once in the result
- every hotspot center carries a nonzero hotspot id
- hotspot ids never exceed the number of centers of their group
"""

from typing import Any, Dict, Iterable

import pandas as pd

from biodiv_hotspots.schemas import (
    GRIDCELL_COL,
    hotspot_col,
    hotspot_id_col,
    subtop_col,
)


class ResultQAError(Exception):
    """Raised when a hotspot result table fails QA."""
    pass


def assert_result_covers_grid(
    result: pd.DataFrame,
    gridcells: Iterable[int],
    context: str = "",
) -> None:
    """
    Assert that the result has exactly one row per grid cell.

    Raises:
        ResultQAError: On missing, extra or duplicate cells
    """
    ctx = f" ({context})" if context else ""
    expected = pd.Index([int(c) for c in gridcells])
    actual = pd.Index(result[GRIDCELL_COL].astype("int64"))

    if actual.has_duplicates:
        dups = actual[actual.duplicated()].unique()[:5].tolist()
        raise ResultQAError(f"Duplicate cells in result: {dups}{ctx}")

    missing = expected.difference(actual)
    if len(missing) > 0:
        raise ResultQAError(
            f"{len(missing)} grid cells missing from result, e.g. {missing[:5].tolist()}{ctx}"
        )

    extra = actual.difference(expected)
    if len(extra) > 0:
        raise ResultQAError(
            f"{len(extra)} cells in result are not in the grid, e.g. {extra[:5].tolist()}{ctx}"
        )


def assert_hotspot_consistency(result: pd.DataFrame, group: str) -> None:
    """
    Assert that centers and ids of one group fit together.

    A center's own id may have been overwritten by a later region, so
    centers and ids are not required to match one to one.

    Raises:
        ResultQAError: If a center has id 0 or an id exceeds the center count
    """
    centers = result[hotspot_col(group)].astype(bool)
    ids = result[hotspot_id_col(group)]

    if (ids[centers] == 0).any():
        bad = result.loc[centers & (ids == 0), GRIDCELL_COL].tolist()[:5]
        raise ResultQAError(f"{group}: hotspot centers without hotspot id: {bad}")

    n_centers = int(centers.sum())
    if (ids < 0).any() or (ids > n_centers).any():
        raise ResultQAError(
            f"{group}: hotspot ids outside 0..{n_centers} (max {int(ids.max())})"
        )


def summarize_group(result: pd.DataFrame, group: str) -> Dict[str, Any]:
    """
    Summary statistics of one group for logging and QA sidecars.

    Returns:
        Dictionary with cell, richness, center, hotspot and subtop counts
    """
    richness = result[group]
    ids = result[hotspot_id_col(group)]
    centers = result[hotspot_col(group)].astype(bool)

    summary = {
        "cells": int(len(result)),
        "cells_with_species": int((richness > 0).sum()),
        "max_richness": int(richness.max()),
        "mean_richness": float(richness.mean()),
        "hotspot_centers": int(centers.sum()),
        "hotspot_ids": int(ids[ids > 0].nunique()),
        "hotspot_cells": int((ids > 0).sum()),
        "min_center_richness": int(richness[centers].min()) if centers.any() else None,
    }

    subtop = subtop_col(group)
    if subtop in result.columns:
        summary["subtop_cells"] = int(result[subtop].astype(bool).sum())

    return summary


def validate_result(result: pd.DataFrame, gridcells: Iterable[int], groups: Iterable[str]) -> Dict:
    """
    Run all result checks and return per-group summaries.

    Raises:
        ResultQAError: If any check fails
    """
    assert_result_covers_grid(result, gridcells)
    summaries = {}
    for group in groups:
        assert_hotspot_consistency(result, group)
        summaries[group] = summarize_group(result, group)
    return summaries
