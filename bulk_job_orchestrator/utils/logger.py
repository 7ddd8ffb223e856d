"""
Logging utilities for Bulk Job Orchestrator

Components log through stdlib ``logging`` with structured ``extra`` fields.
Job and batch identities are lifted to the top level of each JSON line so
log aggregation can group by them.
"""

import logging
import sys
import json
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pathlib import Path

# Attributes every LogRecord carries; anything else arrived through ``extra``
# or a context filter.
_RECORD_ATTRIBUTES = set(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {"message", "asctime"}

_IDENTITY_FIELDS = ("component", "job_id", "batch_id")

_PLAIN_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per record.

    ``component``, ``job_id`` and ``batch_id`` sit next to the message; other
    extra fields (states, counts, errors) are nested under ``extra``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage()
        }

        extra = {key: value for key, value in record.__dict__.items() if key not in _RECORD_ATTRIBUTES}
        for key in _IDENTITY_FIELDS:
            if extra.get(key) is not None:
                entry[key] = extra.pop(key)
            else:
                extra.pop(key, None)
        if extra:
            entry["extra"] = extra

        if record.exc_info:
            entry["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(entry, default=str, ensure_ascii=False)


class BulkContextFilter(logging.Filter):
    """Stamps bound context onto records that do not set the field themselves."""

    def __init__(self):
        super().__init__()
        self.context: Dict[str, Any] = {}

    def bind(self, **kwargs):
        self.context.update(kwargs)

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            if not hasattr(record, key):
                setattr(record, key, value)
        return True


def setup_logger(
    name: str,
    level: str = "INFO",
    structured: bool = True,
    log_file: Optional[str] = None
) -> logging.Logger:
    """
    Configure console (stderr) and optional file output for a logger.

    Handlers installed by an earlier call are replaced, so the level, the
    format and the target stream always follow the latest call.

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        structured: JSON lines when true, plain text otherwise
        log_file: Optional log file path

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    numeric_level = getattr(logging, level.upper())
    logger.setLevel(numeric_level)

    for handler in [h for h in logger.handlers if getattr(h, "bulk_managed", False)]:
        logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.bulk_managed = True
        handler.setLevel(numeric_level)
        handler.setFormatter(StructuredFormatter() if structured else logging.Formatter(_PLAIN_FORMAT))
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger with a context filter attached."""
    logger = logging.getLogger(name)
    if not hasattr(logger, 'context_filter'):
        context_filter = BulkContextFilter()
        logger.addFilter(context_filter)
        logger.context_filter = context_filter
    return logger


def set_log_context(logger: logging.Logger, **kwargs):
    """Bind context fields (component, job_id, ...) to every record of ``logger``."""
    if hasattr(logger, 'context_filter'):
        logger.context_filter.bind(**kwargs)
