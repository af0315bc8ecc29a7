"""
Run parameters for hotspot detection.

Values come from the `hotspots` section of configs/params.yml or directly
from the caller. They are checked before any computation: a count that is
not a whole number >= 1, or a flag that is not a boolean, rejects the run.
An unknown subtop mode is not an error; it silently becomes "none".
"""

import math
from dataclasses import asdict, dataclass
from numbers import Real
from typing import Any, Dict, Optional

import numpy as np

from biodiv_hotspots.thresholds import normalize_subtop_mode


class ConfigError(ValueError):
    """Raised when run parameters are invalid."""
    pass


def _check_count(name: str, value: Any) -> int:
    # bool is a Real subclass; True must not pass as 1
    if isinstance(value, bool) or not isinstance(value, Real):
        raise ConfigError(f"{name} must be numeric, got {value!r}")
    if not math.isfinite(value) or value != int(value):
        raise ConfigError(f"{name} must be a whole number, got {value!r}")
    if value < 1:
        raise ConfigError(f"{name} must be >= 1, got {value!r}")
    return int(value)


def _check_flag(name: str, value: Any) -> bool:
    if not isinstance(value, (bool, np.bool_)):
        raise ConfigError(f"{name} must be True or False, got {value!r}")
    return bool(value)


@dataclass
class HotspotConfig:
    """
    Validated hotspot run parameters.

    Attributes:
        number_of_hotspots: Hotspots to find per group (ties can add more)
        subtop_mode: "none", "amount", "sd" or "2sd"
        sub_top: Number of subtop cells in "amount" mode
        return_tf: Flags as booleans (True) or 0/1 integers (False)
        print_progress: Report per-group progress
    """
    number_of_hotspots: int = 10
    subtop_mode: str = "none"
    sub_top: int = 250
    return_tf: bool = True
    print_progress: bool = False

    def __post_init__(self):
        self.number_of_hotspots = _check_count("number_of_hotspots", self.number_of_hotspots)
        self.sub_top = _check_count("sub_top", self.sub_top)
        self.return_tf = _check_flag("return_tf", self.return_tf)
        self.print_progress = _check_flag("print_progress", self.print_progress)
        self.subtop_mode = normalize_subtop_mode(self.subtop_mode)

    @property
    def subtop_active(self) -> bool:
        return self.subtop_mode != "none"

    @classmethod
    def from_params(cls, params: Optional[Dict[str, Any]]) -> "HotspotConfig":
        """
        Build a config from the `hotspots` section of params.yml.

        Missing keys take the defaults; unknown keys are rejected.
        """
        params = dict(params or {})
        known = set(cls.__dataclass_fields__)
        unknown = set(params) - known
        if unknown:
            raise ConfigError(f"Unknown hotspot parameters: {sorted(unknown)}")
        return cls(**params)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
