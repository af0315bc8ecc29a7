#!/usr/bin/env python3
"""
02_hotspot_sensitivity.py

Sensitivity of the hotspots to the run parameters.

Reruns hotspot detection for every combination of `number_of_hotspots` and
`subtop_mode` listed in the `sensitivity` section of params.yml and records,
per group, how many centers, hotspot cells and subtop cells each setting gives.

Outputs:
- data/processed/sensitivity/hotspot_sensitivity_summary.csv
"""

import sys
from itertools import product
from pathlib import Path

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from biodiv_hotspots.config import HotspotConfig
from biodiv_hotspots.hotspots import detect_hotspots
from biodiv_hotspots.io_utils import (
    atomic_write_df,
    load_hotspot_inputs,
    read_yaml,
    resolve_input_paths,
)
from biodiv_hotspots.logging_utils import get_logger
from biodiv_hotspots.paths import PARAMS_FILE, SENSITIVITY_DIR, ensure_dirs_exist
from biodiv_hotspots.qa import validate_result

OUTPUT_SUMMARY = SENSITIVITY_DIR / "hotspot_sensitivity_summary.csv"


def run_sensitivity(gridcells, observations, species, base: HotspotConfig, sweep: dict, logger) -> pd.DataFrame:
    """One row per (number_of_hotspots, subtop_mode, group)."""
    counts = sweep.get("number_of_hotspots", [base.number_of_hotspots])
    modes = sweep.get("subtop_modes", [base.subtop_mode])

    rows = []
    for n, mode in product(counts, modes):
        config = HotspotConfig(
            number_of_hotspots=n,
            subtop_mode=mode,
            sub_top=base.sub_top,
        )
        run = detect_hotspots(
            observations,
            gridcells,
            species_table=species,
            logger=logger,
            **config.to_dict(),
        )
        summaries = validate_result(run.to_frame(), gridcells, run.groups)

        for group, summary in summaries.items():
            state = run.states[group]
            rows.append({
                "number_of_hotspots": n,
                "subtop_mode": config.subtop_mode,
                "group": group,
                "hotspot_threshold": state.thresholds.hotspot,
                "subtop_threshold": state.thresholds.subtop,
                "hotspot_centers": summary["hotspot_centers"],
                "hotspot_ids_remaining": summary["hotspot_ids"],
                "hotspot_cells": summary["hotspot_cells"],
                "subtop_cells": summary.get("subtop_cells", 0),
                "exhausted": state.exhausted,
            })
        logger.info(f"n={n}, subtop={config.subtop_mode}: done")

    return pd.DataFrame(rows)


def main():
    """Main entry point."""
    with get_logger("02_hotspot_sensitivity") as logger:
        logger.info("Starting 02_hotspot_sensitivity.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        base = HotspotConfig.from_params(config.get("hotspots"))
        sweep = config.get("sensitivity", {})

        try:
            paths = resolve_input_paths(config["inputs"])
            logger.log_inputs(paths)
            gridcells, observations, species = load_hotspot_inputs(config["inputs"], paths, logger=logger)

            summary = run_sensitivity(gridcells, observations, species, base, sweep, logger)

            ensure_dirs_exist()
            atomic_write_df(summary, OUTPUT_SUMMARY, index=False)
            logger.info(f"Wrote: {OUTPUT_SUMMARY} ({len(summary)} rows)")
            logger.log_outputs({"sensitivity_summary": str(OUTPUT_SUMMARY)})

            logger.info("SUCCESS: Built hotspot sensitivity summary")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
