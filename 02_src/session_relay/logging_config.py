"""Structured logging for Session Relay.

Everything, including uvicorn's server and access logs and the watchfiles
notifier, is written as one JSON object per line to stdout and a rotating
file. main.py runs uvicorn with ``log_config=None`` so these routes stay in
place after the server starts.
"""

import json
import logging
import logging.config
import logging.handlers
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH

# Third-party loggers that reach the root JSON handlers: name -> minimum level.
# None follows the configured application level.
THIRD_PARTY_LEVELS: dict[str, str | None] = {
    "uvicorn": None,
    "uvicorn.error": None,
    "uvicorn.access": "WARNING",  # one record per HTTP request otherwise
    "watchfiles": "WARNING",  # logs every raw change batch at INFO
}


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the caller's ``context`` dict attached."""

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

        # Session id, file path, byte range etc.
        if hasattr(record, "context"):
            log_data["context"] = record.context

        return json.dumps(log_data, default=str)


def build_logging_config(log_level: str, log_file: str) -> dict:
    """dictConfig payload for the application and routed third-party loggers."""
    level = log_level.upper()
    handlers = ["file", "console"]

    loggers = {
        name: {"level": override or level, "propagate": True}
        for name, override in THIRD_PARTY_LEVELS.items()
    }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "session_relay.logging_config.JSONFormatter",
            },
        },
        "handlers": {
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "filename": log_file,
                "maxBytes": 10 * 1024 * 1024,  # 10 MB
                "backupCount": 5,
                "formatter": "json",
                "encoding": "utf-8",
            },
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "json",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": loggers,
        "root": {
            "level": level,
            "handlers": handlers,
        },
    }


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Configure JSON logging for the relay and the servers it embeds.

    Args:
        log_level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
                   Defaults to LOG_LEVEL env var or INFO.
        log_file: Path to log file. Defaults to 04_logs/app.log.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(build_logging_config(log_level, log_file))


def get_logger(name: str) -> logging.Logger:
    """Module logger; use ``extra={"context": {...}}`` for structured fields."""
    return logging.getLogger(name)
