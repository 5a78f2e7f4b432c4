"""
GarmentFlow - Structured logging setup

JSON lines in production (LOG_FORMAT=json), readable text otherwise.
Anything passed via ``extra={...}`` is included in the JSON payload.

Usage:
    from app.logging_config import get_logger

    logger = get_logger(__name__)
    logger.info("Work order created", extra={"work_order_number": "WO-2026-0001"})
"""
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from app.core.config import settings

# Attributes present on every LogRecord; anything else came in through `extra`
_RESERVED_ATTRS = set(
    logging.LogRecord("", 0, "", 0, "", (), None).__dict__.keys()
) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """Render log records as single-line JSON documents."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class TextFormatter(logging.Formatter):
    """Plain formatter that appends `extra` context as key=value pairs."""

    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-8s %(name)s: %(message)s")

    def format(self, record: logging.LogRecord) -> str:
        base = super().format(record)
        context = {
            k: v for k, v in record.__dict__.items()
            if k not in _RESERVED_ATTRS and not k.startswith("_")
        }
        if context:
            base += " | " + " ".join(f"{k}={v}" for k, v in context.items())
        return base


_configured = False


def setup_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """Configure the root logger once (idempotent)."""
    global _configured
    if _configured:
        return

    level = (level or settings.LOG_LEVEL).upper()
    log_format = log_format or settings.LOG_FORMAT
    formatter: logging.Formatter = JSONFormatter() if log_format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE, encoding="utf-8"))

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # SQLAlchemy is noisy at INFO
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a named logger."""
    return logging.getLogger(name)
