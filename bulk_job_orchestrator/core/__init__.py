"""
Core package for Bulk Job Orchestrator

Contains the orchestrator facade and the exception hierarchy.
"""

from .orchestrator import BulkOrchestrator, parse_query_object
from .exceptions import (
    BulkOrchestratorError,
    ConfigurationError,
    BatchAlreadyExecutedError,
    BatchNotStartedError,
    JobNotOpenError,
    QueryParseError,
    BulkApiError,
    BatchFailedError,
    PollingTimeoutError,
    TransportError,
    SessionExpiredError
)

__all__ = [
    "BulkOrchestrator",
    "parse_query_object",
    "BulkOrchestratorError",
    "ConfigurationError",
    "BatchAlreadyExecutedError",
    "BatchNotStartedError",
    "JobNotOpenError",
    "QueryParseError",
    "BulkApiError",
    "BatchFailedError",
    "PollingTimeoutError",
    "TransportError",
    "SessionExpiredError"
]
