"""
Provenance for hotspot outputs.

Every table a pipeline script writes gets a JSON sidecar in
data/processed/metadata recording what produced it: a sha256 per input file
(grid cells, observations, accepted species), a digest of the params.yml
contents, the git state, library versions and the run id. A rerun whose
input hashes and config digest still match the sidecar may reuse the output.
"""

import hashlib
import json
import subprocess
from datetime import datetime, timezone
from functools import partial
from pathlib import Path
from typing import Any, Dict, Optional, Union

from biodiv_hotspots.io_utils import atomic_write_json, read_json
from biodiv_hotspots.logging_utils import get_versions
from biodiv_hotspots.paths import METADATA_DIR, PROJECT_ROOT

CHUNK_SIZE = 1 << 16


# =============================================================================
# Digests
# =============================================================================

def hash_file(path: Union[str, Path], algorithm: str = "sha256") -> str:
    """Hex digest of a file's bytes."""
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"Cannot hash missing file: {path}")

    digest = hashlib.new(algorithm)
    with open(path, "rb") as f:
        for chunk in iter(partial(f.read, CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def hash_string(s: str, algorithm: str = "sha256") -> str:
    return hashlib.new(algorithm, s.encode("utf-8")).hexdigest()


def hash_dict(d: Dict[str, Any], algorithm: str = "sha256") -> str:
    """
    Digest of a config mapping.

    The mapping is serialised as canonical JSON (sorted keys), so the digest
    depends on the values only and not on the order params.yml lists them in.
    """
    return hash_string(json.dumps(d, sort_keys=True, default=str), algorithm)


def fingerprint_inputs(inputs: Dict[str, Union[str, Path]]) -> Dict[str, Dict[str, Any]]:
    """Path and sha256 per named input; missing files get hash None."""
    fingerprints = {}
    for name, path in inputs.items():
        path = Path(path)
        if path.is_file():
            fingerprints[name] = {"path": str(path), "hash": hash_file(path)}
        else:
            fingerprints[name] = {"path": str(path), "hash": None, "missing": True}
    return fingerprints


# =============================================================================
# Git state
# =============================================================================

def _git(*args: str) -> Optional[str]:
    try:
        proc = subprocess.run(
            ["git", *args],
            cwd=PROJECT_ROOT,
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired):
        return None
    return proc.stdout.strip() if proc.returncode == 0 else None


def get_git_state() -> Dict[str, Any]:
    """Current commit and whether the working tree has uncommitted changes."""
    commit = _git("rev-parse", "HEAD")
    status = _git("status", "--porcelain")
    return {
        "commit": commit,
        "dirty": None if status is None else bool(status),
    }


# =============================================================================
# Sidecars
# =============================================================================

def sidecar_path(output_path: Union[str, Path], metadata_dir: Optional[Path] = None) -> Path:
    """data/processed/metadata/<output stem>_metadata.json"""
    directory = Path(metadata_dir) if metadata_dir is not None else METADATA_DIR
    return directory / f"{Path(output_path).stem}_metadata.json"


def create_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Build the provenance record of one output.

    Args:
        output_path: The output the record describes
        inputs: Input name -> file path
        config: Full params.yml contents used for the run
        run_id: Run id of the script's logger
        extra: Anything else worth keeping, e.g. per-group hotspot summaries

    Returns:
        JSON-serialisable dictionary
    """
    metadata = {
        "output_file": str(output_path),
        "run_id": run_id,
        "created_at": datetime.now(timezone.utc).isoformat(),
        "inputs": fingerprint_inputs(inputs),
        "config_digest": hash_dict(config),
        "config": config,
        "git": get_git_state(),
        "versions": get_versions(),
    }
    if extra:
        metadata["extra"] = extra
    return metadata


def write_metadata_sidecar(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    run_id: str,
    extra: Optional[Dict[str, Any]] = None,
    metadata_dir: Optional[Path] = None,
) -> Path:
    """Write the provenance record of output_path; returns the sidecar path."""
    target = sidecar_path(output_path, metadata_dir)
    atomic_write_json(create_metadata_sidecar(output_path, inputs, config, run_id, extra), target)
    return target


def read_metadata_sidecar(
    output_path: Union[str, Path],
    metadata_dir: Optional[Path] = None,
) -> Optional[Dict[str, Any]]:
    target = sidecar_path(output_path, metadata_dir)
    return read_json(target) if target.exists() else None


def validate_cache(
    output_path: Union[str, Path],
    inputs: Dict[str, str],
    config: Dict[str, Any],
    metadata_dir: Optional[Path] = None,
) -> bool:
    """
    True if output_path can be reused as is.

    That needs the output, its sidecar, an unchanged config digest and, for
    every current input, an existing file whose hash matches the recorded one.
    """
    if not Path(output_path).exists():
        return False

    metadata = read_metadata_sidecar(output_path, metadata_dir)
    if metadata is None or metadata.get("config_digest") != hash_dict(config):
        return False

    recorded = metadata.get("inputs", {})
    current = fingerprint_inputs(inputs)
    return all(
        fp["hash"] is not None and recorded.get(name, {}).get("hash") == fp["hash"]
        for name, fp in current.items()
    )
