"""
Hawker Pulse - Logging Setup

Configures the standard library root logger from the `logging` config section.
Modules keep using `logging.getLogger(__name__)` and pass structured context via
`extra={...}`; the JSON formatter emits those extras as top-level keys.

Usage:
    from hawker_pulse.shared.logging_config import configure_logging

    configure_logging()  # level/format from config
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any

from hawker_pulse.shared.config import Settings, get_config

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Attributes present on every LogRecord; anything else came from `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {
    "message",
    "asctime",
    "taskName",
}


class JsonFormatter(logging.Formatter):
    """Render log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def configure_logging(config: Settings | None = None, level: str | None = None) -> None:
    """
    Install a single stream handler on the root logger.

    Args:
        config: Configuration object (uses default if not provided)
        level: Override for the configured log level
    """
    config = config or get_config()

    handler = logging.StreamHandler()
    if config.logging.format == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT))

    root = logging.getLogger()
    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel((level or config.logging.level).upper())
