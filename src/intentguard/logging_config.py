"""Logging setup for IntentGuard.

Text logs go to ``<workspace>/<control_dir>/logs/`` (``INTENTGUARD_LOG_DIR``
overrides the directory, ``INTENTGUARD_LOG_LEVEL`` the level). Structured
JSON logging tags every record with the governor's current task id.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Optional

from .config import Settings, settings as default_settings

# Context var for correlation ID (used in structured logging)
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "thread",
    "threadName",
    "exc_info",
    "exc_text",
    "stack_info",
    "message",
    "taskName",
}


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, with the correlation id and any ``extra`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "correlation_id": correlation_id_var.get(),
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


def setup_structured_logging(log_level: str = "INFO") -> None:
    """Replace the root logger's handlers with a JSON stdout handler."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper()))
    root_logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    handler.setLevel(getattr(logging, log_level.upper()))

    root_logger.addHandler(handler)


def get_default_log_dir(
    workspace: Optional[Path] = None, settings: Optional[Settings] = None
) -> Path:
    """``INTENTGUARD_LOG_DIR``, else the control directory's ``logs/`` folder."""
    if "INTENTGUARD_LOG_DIR" in os.environ:
        return Path(os.environ["INTENTGUARD_LOG_DIR"])

    if workspace is None:
        workspace = Path.cwd()
    cfg = settings or default_settings
    return Path(workspace) / cfg.control_dir / "logs"


def configure_logging(
    workspace: Optional[Path] = None,
    log_dir: Optional[Path] = None,
    log_level: Optional[str] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> logging.Logger:
    """
    Attach console and file handlers to the ``intentguard`` logger.

    Existing handlers are dropped, so repeated calls do not duplicate output.
    The file defaults to a timestamped name under ``get_default_log_dir``.
    """
    logger = logging.getLogger("intentguard")

    logger.handlers.clear()

    if log_level is None:
        log_level = os.environ.get("INTENTGUARD_LOG_LEVEL", "INFO")
    logger.setLevel(getattr(logging, log_level.upper()))

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_to_console:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_to_file:
        if log_dir is None:
            log_dir = get_default_log_dir(workspace, settings)

        log_dir.mkdir(parents=True, exist_ok=True)

        if log_filename is None:
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_filename = f"intentguard_{timestamp}.log"

        log_path = log_dir / log_filename

        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

        logger.info(f"Logging to: {log_path}")

    return logger
