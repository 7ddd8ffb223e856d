"""
Utilities package for Bulk Job Orchestrator

Logging and notification signals. Configuration lives in ``utils.config``.
"""

from .logger import setup_logger, get_logger, set_log_context, StructuredFormatter
from .events import Signal

__all__ = [
    "setup_logger",
    "get_logger",
    "set_log_context",
    "StructuredFormatter",
    "Signal"
]
