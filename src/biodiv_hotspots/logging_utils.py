"""
Run logging for the hotspot pipeline scripts.

Each script run gets its own JSONL file, logs/<script>_<run_id>.jsonl, with
one object per line:

    {"timestamp", "script_name", "run_id", "level", "message", "extra"?}

Plain messages also go to stdout. Structured records (config, inputs,
outputs, metrics, per-group hotspot summaries) go to the JSONL file only.
"""

import json
import logging
import platform
import sys
import uuid
from datetime import datetime, timezone
from importlib import metadata
from pathlib import Path
from typing import Any, Optional

from biodiv_hotspots.paths import LOGS_DIR

TRACKED_PACKAGES = ("pandas", "numpy", "geopandas", "shapely", "pyyaml", "pyarrow")

CONSOLE_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"


def generate_run_id() -> str:
    """UTC timestamp plus a short random suffix, e.g. 20260101_120000_1a2b3c4d."""
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{uuid.uuid4().hex[:8]}"


def get_versions() -> dict[str, Optional[str]]:
    """Interpreter and library versions recorded with every run."""
    versions: dict[str, Optional[str]] = {"python": platform.python_version()}
    for package in TRACKED_PACKAGES:
        try:
            versions[package] = metadata.version(package)
        except metadata.PackageNotFoundError:
            versions[package] = None
    return versions


class JSONLFormatter(logging.Formatter):
    """Render a log record as one JSON line tagged with script and run id."""

    def __init__(self, script_name: str, run_id: str):
        super().__init__()
        self.script_name = script_name
        self.run_id = run_id

    def format(self, record: logging.LogRecord) -> str:
        line = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "script_name": self.script_name,
            "run_id": self.run_id,
            "level": record.levelname,
            "message": record.getMessage(),
        }
        payload = getattr(record, "payload", None)
        if payload:
            line["extra"] = payload
        return json.dumps(line, default=str)


def _console_only_plain(record: logging.LogRecord) -> bool:
    return not getattr(record, "file_only", False)


class JSONLLogger:
    """
    Logger for one script run.

    Usage:
        with get_logger("01_build_hotspot_status") as logger:
            logger.info("Computing richness", extra={"group": "Group1"})
            logger.log_group_summary("Group1", {"hotspot_centers": 2})

    Any exception leaving the `with` block is logged as an ERROR record
    before the file is closed.
    """

    def __init__(
        self,
        script_name: str,
        run_id: Optional[str] = None,
        log_dir: Optional[Path] = None,
    ):
        self.script_name = script_name
        self.run_id = run_id or generate_run_id()
        self.log_dir = Path(log_dir) if log_dir is not None else LOGS_DIR
        self.log_dir.mkdir(parents=True, exist_ok=True)
        self.log_file = self.log_dir / f"{script_name}_{self.run_id}.jsonl"

        file_handler = logging.FileHandler(self.log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(JSONLFormatter(script_name, self.run_id))

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        console_handler.addFilter(_console_only_plain)

        self._handlers = [file_handler, console_handler]
        self._logger = logging.getLogger(f"biodiv_hotspots.{script_name}")
        self._logger.setLevel(logging.DEBUG)
        self._logger.propagate = False
        for handler in self._handlers:
            self._logger.addHandler(handler)

        self._record(
            "Logger initialized",
            log_file=str(self.log_file),
            versions=get_versions(),
        )

    def _log(self, level: int, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._logger.log(level, message, extra={"payload": extra})

    def _record(self, message: str, **fields: Any) -> None:
        """INFO record for the JSONL file only."""
        self._logger.info(message, extra={"payload": fields, "file_only": True})

    def debug(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, extra: Optional[dict[str, Any]] = None) -> None:
        self._log(logging.ERROR, message, extra)

    def log_config(self, config: dict[str, Any], config_digest: Optional[str] = None) -> None:
        self._record("Configuration loaded", config=config, config_digest=config_digest)

    def log_inputs(self, inputs: dict[str, str]) -> None:
        self._record("Inputs registered", inputs=inputs)

    def log_outputs(self, outputs: dict[str, str]) -> None:
        self._record("Outputs registered", outputs=outputs)

    def log_metrics(self, metrics: dict[str, Any]) -> None:
        self._record("Metrics recorded", metrics=metrics)

    def log_group_summary(self, group: str, summary: dict[str, Any]) -> None:
        """Hotspot counts and thresholds of one species group."""
        self._record(f"Group summary recorded: {group}", group=group, summary=summary)

    def close(self) -> None:
        self._record("Logger closing")
        for handler in self._handlers:
            self._logger.removeHandler(handler)
            handler.close()

    def __enter__(self) -> "JSONLLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.error(f"Exception occurred: {exc_type.__name__}: {exc_val}")
        self.close()


def get_logger(
    script_name: str,
    run_id: Optional[str] = None,
    log_dir: Optional[Path] = None,
) -> JSONLLogger:
    """Open the run logger of a pipeline script (see JSONLLogger)."""
    return JSONLLogger(script_name=script_name, run_id=run_id, log_dir=log_dir)
