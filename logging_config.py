"""
Structured JSON logging for the student portal.

Every log line is a single JSON object on stdout with a channel
(auth, db, storage, onboarding, router, portal), the business context of
the call (user id, table, wizard step) and optional extra metadata.
"""

import json
import logging
from datetime import datetime, timezone

CHANNELS = ["auth", "db", "storage", "onboarding", "router", "portal"]

_configured = False


class StructuredJsonFormatter(logging.Formatter):
    """Formats a record as one JSON object: timestamp, level, message, channel, context, extra."""

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z",
            "level": record.levelname,
            "message": record.getMessage(),
            "channel": getattr(record, "channel", record.name.split(".")[-1] if "." in record.name else "app"),
            "context": getattr(record, "context", {}) or {},
            "extra": getattr(record, "extra_data", {}) or {},
        }
        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    Configure the portal logger tree once per process.

    Streamlit re-executes the app script on every interaction, so repeated
    calls must not stack handlers.
    """
    global _configured
    root_logger = logging.getLogger("portal")
    if _configured:
        return root_logger

    handler = logging.StreamHandler()
    handler.setFormatter(StructuredJsonFormatter())

    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    root_logger.handlers = [handler]
    root_logger.propagate = False

    for channel in CHANNELS:
        logging.getLogger(f"portal.{channel}").setLevel(getattr(logging, level.upper(), logging.INFO))

    _configured = True
    return root_logger


def get_logger(channel: str) -> logging.Logger:
    return logging.getLogger(f"portal.{channel}")


def log_with_context(
    logger: logging.Logger,
    level: str,
    message: str,
    context: dict | None = None,
    extra_data: dict | None = None,
    exc_info: bool = False,
) -> None:
    """
    Emit a structured log entry.

    Args:
        logger: channel logger from get_logger()
        level: INFO, WARNING, ERROR or DEBUG
        message: human-readable message
        context: business context (user_id, table, step)
        extra_data: additional metadata (bucket, object name, counts)
        exc_info: attach the active exception traceback
    """
    log_level = getattr(logging, level.upper(), logging.INFO)
    logger.log(
        log_level,
        message,
        exc_info=exc_info,
        extra={"context": context or {}, "extra_data": extra_data or {}, "channel": logger.name.split(".")[-1]},
    )
