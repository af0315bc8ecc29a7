#!/usr/bin/env python3
"""
01_build_hotspot_status.py

Build biodiversity hotspot status for every grid cell.

- Load the grid cell list, species observations and accepted species table
- Count distinct species per cell for each species group
- Pick hotspot centers (ties included) and grow them through subtop cells
- QA the result table and log per-group summaries

Outputs:
- data/processed/hotspots/hotspot_status.parquet (one row per grid cell)
- data/processed/hotspots/hotspot_status.csv (human-readable)
- data/processed/hotspots/hotspot_cells.geojson (cells in any hotspot, for GIS)
- data/processed/hotspots/group_summary.csv (per-group counts)
- data/processed/metadata/hotspot_status_metadata.json (provenance sidecar)

Usage:
    python scripts/01_build_hotspot_status.py [--force]
"""

import argparse
import sys
from pathlib import Path
from typing import Dict

import pandas as pd

sys.path.insert(0, str(Path(__file__).resolve().parent.parent / "src"))

from biodiv_hotspots.config import HotspotConfig
from biodiv_hotspots.hashing import validate_cache, write_metadata_sidecar
from biodiv_hotspots.hotspots import detect_hotspots
from biodiv_hotspots.io_utils import (
    atomic_write_df,
    atomic_write_gdf,
    load_hotspot_inputs,
    read_yaml,
    resolve_input_paths,
)
from biodiv_hotspots.logging_utils import get_logger
from biodiv_hotspots.paths import HOTSPOTS_DIR, PARAMS_FILE, ensure_dirs_exist
from biodiv_hotspots.qa import validate_result
from biodiv_hotspots.schemas import GRIDCELL_COL, hotspot_id_col


# =============================================================================
# Constants
# =============================================================================

OUTPUT_STATUS = HOTSPOTS_DIR / "hotspot_status.parquet"
OUTPUT_STATUS_CSV = HOTSPOTS_DIR / "hotspot_status.csv"
OUTPUT_CELLS_GEOJSON = HOTSPOTS_DIR / "hotspot_cells.geojson"
OUTPUT_GROUP_SUMMARY = HOTSPOTS_DIR / "group_summary.csv"


# =============================================================================
# Outputs
# =============================================================================

def build_group_summary(summaries: Dict[str, Dict], run) -> pd.DataFrame:
    """One row per group with QA counts and thresholds."""
    rows = []
    for group, summary in summaries.items():
        state = run.states[group]
        rows.append({
            "group": group,
            **summary,
            "hotspot_threshold": state.thresholds.hotspot,
            "subtop_threshold": state.thresholds.subtop,
            "target_hotspots": state.target,
            "exhausted": state.exhausted,
        })
    return pd.DataFrame(rows)


def build_hotspot_cells_gdf(result: pd.DataFrame, run, outputs_config: Dict):
    """Cells that belong to a hotspot of at least one group, with geometry."""
    id_cols = [hotspot_id_col(g) for g in run.groups]
    in_hotspot = (result[id_cols] > 0).any(axis=1)

    gdf = run.grid.to_geodataframe(
        cell_size=outputs_config.get("cell_size", 1.0),
        origin=tuple(outputs_config.get("origin", (0.0, 0.0))),
        crs=outputs_config.get("crs"),
    )
    gdf = gdf[["gridcell", "geometry"]].merge(result, on=GRIDCELL_COL, how="left")
    return gdf[in_hotspot.to_numpy()].copy()


# =============================================================================
# Main
# =============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Build biodiversity hotspot status")
    parser.add_argument("--force", action="store_true", help="Rebuild even if outputs are current")
    args = parser.parse_args()

    with get_logger("01_build_hotspot_status") as logger:
        logger.info("Starting 01_build_hotspot_status.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        hotspot_config = HotspotConfig.from_params(config.get("hotspots"))
        inputs_config = config["inputs"]
        outputs_config = config.get("outputs", {})

        logger.info(
            f"Hotspots per group: {hotspot_config.number_of_hotspots}, "
            f"subtop mode: {hotspot_config.subtop_mode}"
            + (f" ({hotspot_config.sub_top} cells)" if hotspot_config.subtop_mode == "amount" else "")
        )

        try:
            paths = resolve_input_paths(inputs_config)
            logger.log_inputs(paths)

            if not args.force and validate_cache(OUTPUT_STATUS, paths, config):
                logger.info("Outputs are current (hashes match); use --force to rebuild")
                return

            gridcells, observations, species = load_hotspot_inputs(inputs_config, paths, logger=logger)

            run = detect_hotspots(
                observations,
                gridcells,
                species_table=species,
                logger=logger,
                **hotspot_config.to_dict(),
            )
            result = run.to_frame()

            summaries = validate_result(result, gridcells, run.groups)
            for group, summary in summaries.items():
                logger.log_group_summary(group, summary)
                if run.states[group].exhausted:
                    logger.warning(f"{group}: fewer hotspots than requested")
            logger.info("QA validation PASSED")

            group_summary = build_group_summary(summaries, run)
            hotspot_cells = build_hotspot_cells_gdf(result, run, outputs_config)

            ensure_dirs_exist()

            atomic_write_df(result, OUTPUT_STATUS, index=False)
            logger.info(f"Wrote: {OUTPUT_STATUS} ({len(result):,} cells)")

            atomic_write_df(result, OUTPUT_STATUS_CSV, index=False)
            logger.info(f"Wrote: {OUTPUT_STATUS_CSV}")

            if len(hotspot_cells) > 0:
                atomic_write_gdf(hotspot_cells, OUTPUT_CELLS_GEOJSON)
                logger.info(f"Wrote: {OUTPUT_CELLS_GEOJSON} ({len(hotspot_cells):,} hotspot cells)")
            else:
                logger.warning("No hotspot cells to write to GeoJSON")

            atomic_write_df(group_summary, OUTPUT_GROUP_SUMMARY, index=False)
            logger.info(f"Wrote: {OUTPUT_GROUP_SUMMARY}")

            logger.log_outputs({
                "hotspot_status_parquet": str(OUTPUT_STATUS),
                "hotspot_status_csv": str(OUTPUT_STATUS_CSV),
                "hotspot_cells_geojson": str(OUTPUT_CELLS_GEOJSON),
                "group_summary": str(OUTPUT_GROUP_SUMMARY),
            })

            logger.log_metrics({
                "total_cells": len(result),
                "groups": run.groups,
                "hotspots_per_group": {g: s.n_hotspots for g, s in run.states.items()},
            })

            write_metadata_sidecar(
                output_path=OUTPUT_STATUS,
                inputs=paths,
                config=config,
                run_id=logger.run_id,
                extra={"group_summaries": summaries},
            )

            logger.info("=" * 70)
            logger.info("Hotspot Summary:")
            logger.info(f"  Grid cells: {len(result):,}")
            for group, summary in summaries.items():
                logger.info(
                    f"  {group}: {summary['hotspot_centers']} centers, "
                    f"{summary['hotspot_cells']} hotspot cells, "
                    f"max richness {summary['max_richness']}"
                )
            logger.info("=" * 70)

            logger.info("SUCCESS: Built hotspot status")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
