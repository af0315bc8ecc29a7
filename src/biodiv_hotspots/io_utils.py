"""
File I/O for the hotspot pipeline.

Writers never leave a half-written output behind: they write into a hidden
temp file next to the target and move it into place once writing succeeded.
The loaders for the three run inputs (grid cells, observations, accepted
species) return raw tables; `richness.prepare_*` normalises them.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional, Union

import geopandas as gpd
import pandas as pd
import yaml

from biodiv_hotspots.paths import resolve_project_path

PathLike = Union[str, Path]

TABLE_FORMATS = (".csv", ".parquet")
GEO_DRIVERS = {".geojson": "GeoJSON", ".gpkg": "GPKG"}


# =============================================================================
# Atomic writes
# =============================================================================

@contextmanager
def staged_path(target_path: PathLike) -> Iterator[Path]:
    """
    Yield a temp path beside target_path that replaces the target on success.

    If the block raises, the temp file is removed and the target is untouched.
    """
    target = Path(target_path)
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, name = tempfile.mkstemp(prefix=f".{target.stem}_", suffix=target.suffix, dir=target.parent)
    os.close(fd)
    staged = Path(name)
    try:
        yield staged
        os.replace(staged, target)
    finally:
        if staged.exists():
            staged.unlink()


@contextmanager
def atomic_write(target_path: PathLike, mode: str = "w"):
    """Open a staged file for writing; it becomes target_path on a clean exit."""
    with staged_path(target_path) as staged:
        encoding = None if "b" in mode else "utf-8"
        with open(staged, mode, encoding=encoding) as f:
            yield f


def atomic_write_df(df: pd.DataFrame, target_path: PathLike, **kwargs) -> None:
    """Write a table as .csv or .parquet (by extension); kwargs go to pandas."""
    suffix = Path(target_path).suffix.lower()
    if suffix not in TABLE_FORMATS:
        raise ValueError(f"Unsupported table format: {suffix}")

    with staged_path(target_path) as staged:
        if suffix == ".parquet":
            df.to_parquet(staged, **kwargs)
        else:
            df.to_csv(staged, **kwargs)


def atomic_write_gdf(gdf: gpd.GeoDataFrame, target_path: PathLike, **kwargs) -> None:
    """Write cell polygons as GeoParquet, GeoJSON or GeoPackage (by extension)."""
    suffix = Path(target_path).suffix.lower()
    if suffix != ".parquet" and suffix not in GEO_DRIVERS:
        raise ValueError(f"Unsupported geo format: {suffix}")

    with staged_path(target_path) as staged:
        if suffix == ".parquet":
            gdf.to_parquet(staged, **kwargs)
        else:
            # OGR drivers create their own file
            staged.unlink()
            gdf.to_file(staged, driver=GEO_DRIVERS[suffix], **kwargs)


def atomic_write_json(data: Any, target_path: PathLike, **kwargs) -> None:
    """Pretty-printed JSON; values json cannot encode (paths, numpy scalars) become str."""
    kwargs.setdefault("indent", 2)
    kwargs.setdefault("default", str)
    with atomic_write(target_path) as f:
        json.dump(data, f, **kwargs)


# =============================================================================
# Readers
# =============================================================================

def read_yaml(path: PathLike) -> dict:
    with open(path, encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_json(path: PathLike) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def read_df(path: PathLike, **kwargs) -> pd.DataFrame:
    """Read a .csv or .parquet table written by atomic_write_df."""
    suffix = Path(path).suffix.lower()
    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    if suffix == ".csv":
        return pd.read_csv(path, **kwargs)
    raise ValueError(f"Unsupported table format: {suffix}")




# =============================================================================
# Input Loaders
# =============================================================================

def read_gridcells(
    path: PathLike,
    header: bool = False,
    column: Optional[str] = None,
) -> list[int]:
    """
    Read the full grid cell list.

    The file holds one composite cell id per line (x digits followed by a
    3-digit y). File order is kept: it decides hotspot center ties.

    Args:
        path: CSV file with the cell ids
        header: Whether the first line is a header
        column: Column to use when the file has a header (default: first column)

    Returns:
        List of cell ids in file order
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Grid cell list not found: {path}")

    df = pd.read_csv(path, header=0 if header else None)
    if df.empty:
        raise ValueError(f"Grid cell list is empty: {path}")

    series = df[column] if column is not None else df.iloc[:, 0]
    return [int(v) for v in series.tolist()]


def read_observations(
    path: PathLike,
    sep: str = ",",
    **kwargs,
) -> pd.DataFrame:
    """Read the species observation table (species + x/y or gridcell columns)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Observation table not found: {path}")
    return pd.read_csv(path, sep=sep, **kwargs)


def read_species_table(
    path: PathLike,
    sep: str = ",",
    **kwargs,
) -> pd.DataFrame:
    """Read the accepted species table (species id + optional group)."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Species table not found: {path}")
    return pd.read_csv(path, sep=sep, **kwargs)


def resolve_input_paths(inputs_config: dict) -> dict[str, str]:
    """
    Resolve the configured input files of a hotspot run.

    Relative paths are taken from the project root. The species table is
    optional; without it every observed species is accepted.
    """
    paths = {
        "gridcells": str(resolve_project_path(inputs_config["gridcells"])),
        "observations": str(resolve_project_path(inputs_config["observations"])),
    }
    if inputs_config.get("species"):
        paths["species"] = str(resolve_project_path(inputs_config["species"]))
    return paths


def load_hotspot_inputs(
    inputs_config: dict,
    paths: dict[str, str],
    logger=None,
) -> tuple[list[int], pd.DataFrame, Optional[pd.DataFrame]]:
    """
    Load grid cells, observations and (optionally) accepted species.

    Configured column names are renamed to `species`, `x`, `y` and `group`.

    Args:
        inputs_config: The `inputs` section of params.yml
        paths: Resolved input paths (see resolve_input_paths)
        logger: Optional logger

    Returns:
        (gridcells, observations, species table or None)
    """
    gridcells = read_gridcells(
        paths["gridcells"],
        header=inputs_config.get("gridcells_header", False),
    )

    obs_cols = inputs_config.get("observation_columns", {})
    observations = read_observations(
        paths["observations"], sep=inputs_config.get("observations_sep", ",")
    ).rename(columns={
        obs_cols.get("species", "species"): "species",
        obs_cols.get("x", "x"): "x",
        obs_cols.get("y", "y"): "y",
    })

    species = None
    if "species" in paths:
        sp_cols = inputs_config.get("species_columns", {})
        species = read_species_table(
            paths["species"], sep=inputs_config.get("species_sep", ",")
        ).rename(columns={
            sp_cols.get("species", "species"): "species",
            sp_cols.get("group", "group"): "group",
        })

    if logger:
        logger.info(f"Loaded {len(gridcells):,} grid cells from {paths['gridcells']}")
        logger.info(f"Loaded {len(observations):,} observations from {paths['observations']}")
        if species is not None:
            logger.info(f"Loaded {len(species):,} accepted species from {paths['species']}")
        else:
            logger.info("No species table configured: all observed species in one group")

    return gridcells, observations, species
