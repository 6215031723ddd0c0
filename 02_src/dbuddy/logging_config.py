"""Structured logging for the bus inspector.

Every module logs through ``get_logger(__name__)``. The interesting
records are per-source: status transitions (connecting, live, retrying,
stopped), channel overflow and rejected messages. Those pass an
``extra={"context": {...}}`` dict, and the formatter lifts its ``source``
key to the top level so a log can be split per bus with one query.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Renderers poll /api/events several times a second
QUIET_LOGGERS = ("uvicorn.access",)


class JSONFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        context = getattr(record, "context", None)
        if context is not None:
            log_data["context"] = context
            if isinstance(context, dict) and "source" in context:
                log_data["source"] = context["source"]

        # Bodies and enums are not always JSON-native
        return json.dumps(log_data, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
    console: bool = True,
) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Path to log file. Defaults to 04_logs/app.log.
        console: Also log to stdout. Disable when a renderer owns the terminal.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    handlers: dict[str, dict] = {
        "file": {
            "class": "logging.handlers.RotatingFileHandler",
            "filename": log_file,
            "maxBytes": 10 * 1024 * 1024,  # 10 MB
            "backupCount": 5,
            "formatter": "json",
            "encoding": "utf-8",
        },
    }
    if console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "formatter": "json",
            "stream": "ext://sys.stdout",
        }

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "dbuddy.logging_config.JSONFormatter"},
            },
            "handlers": handlers,
            "loggers": {name: {"level": "WARNING"} for name in QUIET_LOGGERS},
            "root": {
                "level": log_level.upper(),
                "handlers": list(handlers),
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
