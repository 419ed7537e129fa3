"""Structured JSON logging for the relay."""

import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path

from .config import DEFAULT_LOG_PATH


class JSONFormatter(logging.Formatter):
    """Render each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        # Request-scoped fields passed as extra={"context": {...}}
        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, ensure_ascii=False, default=str)


def setup_logging(
    log_level: str | None = None,
    log_file: str | None = None,
) -> None:
    """
    Configure root logging with JSON output to stdout and a rotating file.

    Args:
        log_level: Log level name. Defaults to LOG_LEVEL env var or INFO.
        log_file: Path to the log file. Defaults to 04_logs/app.log.
    """
    if log_level is None:
        log_level = os.getenv("LOG_LEVEL", "INFO")

    if log_file is None:
        log_file = str(DEFAULT_LOG_PATH)

    Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "json": {"()": "relay.logging_config.JSONFormatter"},
            },
            "handlers": {
                "file": {
                    "class": "logging.handlers.RotatingFileHandler",
                    "filename": log_file,
                    "maxBytes": 10 * 1024 * 1024,
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
            "loggers": {
                # Per-request HTTP lines from the Telegram client are noise
                "httpx": {"level": "WARNING"},
            },
            "root": {
                "level": log_level.upper(),
                "handlers": ["file", "console"],
            },
        }
    )


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module (pass __name__)."""
    return logging.getLogger(name)
