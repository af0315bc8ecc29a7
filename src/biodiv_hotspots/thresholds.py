"""
Hotspot and subtop richness thresholds.

The hotspot threshold is the richness of the N-th richest cell (ties counted
individually), never below 1. The subtop threshold is a looser bound that
decides which cells a hotspot may grow into:

- "amount": richness of the `sub_top`-th richest cell
- "sd":     lowest hotspot-qualifying richness minus one sample sd of the
            hotspot-qualifying richness values
- "2sd":    as "sd", minus two sd

Both thresholds are floored at 1, so a cell without species never qualifies.
"""

import math
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

SUBTOP_MODES = ("none", "amount", "sd", "2sd")
MIN_RICHNESS = 1

_SD_FACTORS = {"sd": 1.0, "2sd": 2.0}


def normalize_subtop_mode(mode) -> str:
    """Return mode if it is a known subtop mode, otherwise "none"."""
    if isinstance(mode, str) and mode in SUBTOP_MODES:
        return mode
    return "none"


def top_n_requirement(richness, n: int) -> int:
    """
    Smallest richness among the n richest cells.

    With more requested cells than exist, this is the overall minimum.
    """
    values = np.sort(np.asarray(richness))[::-1]
    if values.size == 0:
        raise ValueError("Cannot derive a threshold from an empty richness vector")
    return int(values[: int(n)].min())


def hotspot_threshold(richness, number_of_hotspots: int) -> int:
    """Richness a cell needs to qualify as a hotspot."""
    return max(MIN_RICHNESS, top_n_requirement(richness, number_of_hotspots))


def subtop_threshold(
    richness,
    mode: str,
    hotspot_mask=None,
    sub_top: Optional[int] = None,
) -> Optional[float]:
    """
    Richness a cell needs to be subtop, or None when no subtop is used.

    Args:
        richness: Richness per cell
        mode: Subtop mode; unknown values are treated as "none"
        hotspot_mask: Boolean mask of hotspot-qualifying cells (sd modes)
        sub_top: Number of subtop cells ("amount" mode)

    Returns:
        Threshold (>= 1) or None
    """
    mode = normalize_subtop_mode(mode)

    if mode == "none":
        return None

    if mode == "amount":
        if sub_top is None:
            raise ValueError("subtop mode 'amount' needs sub_top")
        return float(max(MIN_RICHNESS, top_n_requirement(richness, sub_top)))

    if hotspot_mask is None:
        raise ValueError(f"subtop mode '{mode}' needs the hotspot-qualifying mask")

    qualifying = pd.Series(np.asarray(richness)[np.asarray(hotspot_mask, dtype=bool)], dtype=float)
    if qualifying.empty:
        return float(MIN_RICHNESS)

    sd = qualifying.std(ddof=1)
    # a single qualifying cell has no spread
    if math.isnan(sd):
        sd = 0.0

    return float(max(MIN_RICHNESS, qualifying.min() - _SD_FACTORS[mode] * sd))


@dataclass
class GroupThresholds:
    """Thresholds of one group and the cells that clear them."""
    hotspot: int
    subtop: Optional[float]
    hotspot_mask: np.ndarray
    subtop_mask: Optional[np.ndarray]

    @property
    def subtop_active(self) -> bool:
        return self.subtop is not None


def derive_thresholds(
    richness,
    number_of_hotspots: int,
    subtop_mode: str = "none",
    sub_top: Optional[int] = None,
) -> GroupThresholds:
    """
    Derive hotspot and subtop thresholds for one group.

    Subtop status is independent of hotspot status: a hotspot-qualifying cell
    is only subtop if it clears the subtop threshold on its own.
    """
    values = np.asarray(richness)
    threshold = hotspot_threshold(values, number_of_hotspots)
    hotspot_mask = values >= threshold

    sub = subtop_threshold(values, subtop_mode, hotspot_mask, sub_top)
    subtop_mask = values >= sub if sub is not None else None

    return GroupThresholds(
        hotspot=threshold,
        subtop=sub,
        hotspot_mask=hotspot_mask,
        subtop_mask=subtop_mask,
    )
