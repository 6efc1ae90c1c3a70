from __future__ import annotations

import getpass
import logging
import platform
import sys
import uuid
from logging.handlers import RotatingFileHandler
from pathlib import Path

from flask import Flask, g, has_request_context

LOG_FILENAME = "kitchen_inventory.log"
LOG_FORMAT = "%(asctime)s [%(levelname)s] [req=%(request_id)s] %(name)s: %(message)s"
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUP_COUNT = 5


class RequestIdFilter(logging.Filter):
    """Stamp every record with the id of the request that produced it."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = getattr(g, "request_id", None) if has_request_context() else None
        record.request_id = request_id or "-"
        return True


def assign_request_id() -> None:
    g.request_id = uuid.uuid4().hex[:8]


def _prepare(handler: logging.Handler, formatter: logging.Formatter, request_filter: RequestIdFilter) -> logging.Handler:
    handler.setLevel(logging.INFO)
    handler.setFormatter(formatter)
    handler.addFilter(request_filter)
    return handler


def _writes_to(handler: logging.Handler, log_path: Path) -> bool:
    return isinstance(handler, RotatingFileHandler) and handler.baseFilename == str(log_path.resolve())


def configure_logging(app: Flask) -> Path:
    """Send INFO and above to stdout and to a rotating file in the log directory."""

    logs_dir = Path(app.config["INVENTORY_LOG_DIR"])
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_path = logs_dir / LOG_FILENAME

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT)
    request_filter = RequestIdFilter()

    # Subclasses (file handlers, test capture) do not count as console output.
    if not any(type(handler) is logging.StreamHandler for handler in root_logger.handlers):
        root_logger.addHandler(
            _prepare(logging.StreamHandler(sys.stdout), formatter, request_filter)
        )

    if not any(_writes_to(handler, log_path) for handler in root_logger.handlers):
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=LOG_MAX_BYTES,
            backupCount=LOG_BACKUP_COUNT,
            encoding="utf-8",
        )
        root_logger.addHandler(_prepare(file_handler, formatter, request_filter))

    for handler in app.logger.handlers:
        if not any(isinstance(existing, RequestIdFilter) for existing in handler.filters):
            handler.addFilter(request_filter)

    app.logger.setLevel(logging.INFO)
    logging.getLogger("werkzeug").setLevel(logging.INFO)
    return log_path


def log_startup_details(logger: logging.Logger, app: Flask, *, headless: bool = False) -> None:
    try:
        user = getpass.getuser()
    except (KeyError, OSError):
        user = "unknown"

    logger.info("kitchen inventory starting")
    logger.info("python=%s", sys.version.replace("\n", " "))
    logger.info("platform=%s", platform.platform())
    logger.info("user=%s", user)
    logger.info("headless=%s", headless)
    logger.info("data_dir=%s", app.config.get("INVENTORY_DATA_DIR"))
    logger.info("log_dir=%s", app.config.get("INVENTORY_LOG_DIR"))
