"""
Logging utilities for the template migration package.

Library modules only call get_logger(); handlers are installed by the entry
points (FastAPI app, batch CLI) through configure_logging().
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

PACKAGE_LOGGER = "facemigrate"


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per log line."""

    EXTRA_FIELDS = ("item", "version", "format", "container", "error_code")

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = value

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance (typically called with __name__)."""
    return logging.getLogger(name)


def configure_logging(level: str = "INFO", structured: bool = False) -> logging.Logger:
    """
    Configure the package logger.

    Args:
        level: Level name such as "DEBUG" or "INFO"
        structured: If True, emit JSON lines; otherwise human-readable text

    Returns:
        The configured package logger
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level.upper() if isinstance(level, str) else level)

    # Only add a handler once (the app and CLI may both call this)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stderr)
        if structured:
            handler.setFormatter(StructuredFormatter())
        else:
            handler.setFormatter(
                logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            )
        logger.addHandler(handler)

    return logger


def configure_from_settings(settings: Optional[object] = None) -> logging.Logger:
    """Configure logging from the application settings."""
    if settings is None:
        from .config import get_settings
        settings = get_settings()
    return configure_logging(settings.log_level, structured=settings.log_json)
