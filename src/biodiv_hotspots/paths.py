"""
Project locations for the biodiversity hotspot pipeline.

The root is the nearest ancestor holding `.project-root` (or, failing that,
pyproject.toml or .git). Everything else hangs off it:

    configs/params.yml              run parameters
    data/raw/sample/                bundled sample inputs
    data/processed/hotspots/        per-cell hotspot status, GeoJSON, group summary
    data/processed/sensitivity/     parameter sweep summary
    data/processed/metadata/        provenance sidecars
    logs/                           one JSONL file per script run
"""

from pathlib import Path
from typing import Optional, Union

ROOT_MARKERS = (".project-root", "pyproject.toml", ".git")


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Walk upward from start_path until a directory holds a root marker.

    Args:
        start_path: Where to start (default: the directory of this module)

    Raises:
        FileNotFoundError: If neither start_path nor any ancestor is marked
    """
    start = Path(start_path) if start_path is not None else Path(__file__).resolve().parent

    for candidate in (start, *start.parents):
        if any((candidate / marker).exists() for marker in ROOT_MARKERS):
            return candidate

    raise FileNotFoundError(
        f"No project root above {start}; looked for {', '.join(ROOT_MARKERS)}"
    )


PROJECT_ROOT = find_project_root()

CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
SAMPLE_DIR = RAW_DIR / "sample"
PROCESSED_DIR = DATA_DIR / "processed"
HOTSPOTS_DIR = PROCESSED_DIR / "hotspots"
SENSITIVITY_DIR = PROCESSED_DIR / "sensitivity"
METADATA_DIR = PROCESSED_DIR / "metadata"

LOGS_DIR = PROJECT_ROOT / "logs"

OUTPUT_DIRS = (HOTSPOTS_DIR, SENSITIVITY_DIR, METADATA_DIR, LOGS_DIR)


def resolve_project_path(path: Union[str, Path]) -> Path:
    """Absolute paths pass through; relative ones are taken from PROJECT_ROOT."""
    path = Path(path)
    return path if path.is_absolute() else PROJECT_ROOT / path


def ensure_dirs_exist() -> None:
    """Create every output directory of the pipeline."""
    for directory in OUTPUT_DIRS:
        directory.mkdir(parents=True, exist_ok=True)
