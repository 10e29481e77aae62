"""Structured JSON logging for the API and the reminder worker."""

import json
import logging
import sys
from datetime import UTC, datetime
from typing import Any

from shared.config import get_settings

# Workflow identifiers passed through `extra=`
EXTRA_FIELDS = (
    "booking_id",
    "exchange_id",
    "provider_id",
    "actor_id",
    "request_path",
)

# Chatty third-party loggers held at WARNING unless LOG_LEVEL is DEBUG
NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "aiosqlite")


class JSONFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, logger, message, workflow ids, exception."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        log_data.update(
            {name: str(getattr(record, name)) for name in EXTRA_FIELDS if hasattr(record, name)}
        )

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def configure_logging() -> None:
    """Install the JSON handler on the root logger at settings.LOG_LEVEL (stderr)."""
    settings = get_settings()
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(JSONFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    if log_level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info(f"Logging configured: level={settings.LOG_LEVEL}")
