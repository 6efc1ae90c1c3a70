"""Bundle environment details, database info, logs and the SQLite file into a zip."""

from __future__ import annotations

import json
import logging
import os
import platform
import shutil
import socket
import sys
import tempfile
import zipfile
from datetime import datetime, timezone
from pathlib import Path

import psutil
from flask import Flask

from kitchen_inventory.services.database_info import collect_database_info

REPORTED_VARIABLES = ("CI", "INVENTORY_DB_PROVIDER", "INVENTORY_HEADLESS")
MAX_LOG_FILES = 5
LOG_FILE_PATTERN = "*.log*"


class DiagnosticsExportError(RuntimeError):
    """Raised when the diagnostics archive could not be written."""


def default_export_path(app: Flask, now: datetime | None = None) -> Path:
    timestamp = (now or datetime.now()).strftime("%Y%m%d-%H%M%S")
    return Path(app.config["INVENTORY_DATA_DIR"]) / f"diagnostics-{timestamp}.zip"


def _read_memory() -> dict | None:
    try:
        mem = psutil.virtual_memory()
    except Exception:
        return None
    return {"total_mb": mem.total // (1024 ** 2), "used_mb": mem.used // (1024 ** 2), "percent": mem.percent}


def _read_disk(path: str) -> dict | None:
    try:
        usage = psutil.disk_usage(path)
    except Exception:
        return None
    return {"total_gb": usage.total // (1024 ** 3), "used_gb": usage.used // (1024 ** 3), "percent": usage.percent}


def collect_environment(app: Flask) -> dict:
    from kitchen_inventory import __version__

    data_dir = app.config.get("INVENTORY_DATA_DIR") or os.getcwd()
    return {
        "machine": socket.gethostname(),
        "os": platform.platform(),
        "python": sys.version.replace("\n", " "),
        "process_arch": platform.architecture()[0],
        "os_arch": platform.machine(),
        "app_environment": app.config.get("INVENTORY_ENVIRONMENT", "Production"),
        "version": __version__,
        "time_utc": datetime.now(timezone.utc).isoformat(),
        "memory": _read_memory(),
        "disk": _read_disk(data_dir if os.path.isdir(data_dir) else os.getcwd()),
        "variables": {name: os.environ.get(name) for name in REPORTED_VARIABLES},
    }


def _newest_log_files(logs_dir: str | None) -> list[Path]:
    if not logs_dir:
        return []
    directory = Path(logs_dir)
    if not directory.is_dir():
        return []
    files = [path for path in directory.glob(LOG_FILE_PATTERN) if path.is_file()]
    files.sort(key=lambda path: path.stat().st_mtime, reverse=True)
    return files[:MAX_LOG_FILES]


def _copy_logs(staging_dir: Path, logs_dir: str | None, logger: logging.Logger) -> list[str]:
    copied = []
    try:
        files = _newest_log_files(logs_dir)
        if not files:
            return copied
        destination = staging_dir / "logs"
        destination.mkdir(parents=True, exist_ok=True)
        for path in files:
            shutil.copy2(path, destination / path.name)
            copied.append(f"logs/{path.name}")
    except OSError as exc:
        logger.warning("Skipped log files in diagnostics bundle: %s", exc)
    return copied


def _copy_database(staging_dir: Path, database_path: str | None, logger: logging.Logger) -> list[str]:
    copied = []
    if not database_path or not os.path.isfile(database_path):
        return copied
    try:
        destination = staging_dir / "db"
        destination.mkdir(parents=True, exist_ok=True)
        for candidate in (database_path, database_path + "-shm", database_path + "-wal"):
            if os.path.isfile(candidate):
                name = os.path.basename(candidate)
                shutil.copy2(candidate, destination / name)
                copied.append(f"db/{name}")
    except OSError as exc:
        logger.warning("Skipped database copy in diagnostics bundle: %s", exc)
    return copied


def export_diagnostics(app: Flask, output_path: str | Path, logger: logging.Logger | None = None) -> Path:
    """Write the diagnostics zip to ``output_path`` and return its path.

    Missing logs or an unreadable database file only drop that part of the
    bundle; failing to write the archive raises :class:`DiagnosticsExportError`.
    """

    logger = logger or logging.getLogger("kitchen_inventory.diagnostics")
    if not str(output_path).strip():
        raise DiagnosticsExportError("An output path is required.")

    output_path = Path(output_path).expanduser()
    staging_dir = Path(tempfile.mkdtemp(prefix="inv-diag-"))
    try:
        with app.app_context():
            environment = collect_environment(app)
            database = collect_database_info(app)

        (staging_dir / "environment.json").write_text(
            json.dumps(environment, indent=2, default=str), encoding="utf-8"
        )
        (staging_dir / "database.json").write_text(
            json.dumps(database.as_dict(), indent=2, default=str), encoding="utf-8"
        )
        _copy_logs(staging_dir, database.logs_directory, logger)
        _copy_database(staging_dir, database.database_file_path, logger)

        output_path.parent.mkdir(parents=True, exist_ok=True)
        if output_path.exists():
            output_path.unlink()
        with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for path in sorted(staging_dir.rglob("*")):
                if path.is_file():
                    archive.write(path, path.relative_to(staging_dir).as_posix())
    except OSError as exc:
        logger.exception("Diagnostics export failed")
        raise DiagnosticsExportError(f"Unable to write diagnostics bundle: {exc}") from exc
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)

    logger.info("Diagnostics bundle written to %s", output_path)
    return output_path
