"""
Exception classes for Bulk Job Orchestrator

Provides the hierarchy of exceptions raised by jobs, batches, the transport
adapter and the orchestrator facade.
"""

from typing import Optional, Dict, Any


class BulkOrchestratorError(Exception):
    """Base exception for all bulk orchestrator errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


class ConfigurationError(BulkOrchestratorError):
    """Raised when an operation is invoked with missing or invalid parameters."""

    def __init__(self, message: str, config_key: Optional[str] = None, error_code: str = "CONFIGURATION_ERROR"):
        super().__init__(
            message,
            error_code=error_code,
            details={"config_key": config_key}
        )


class BatchAlreadyExecutedError(ConfigurationError):
    """Raised when execute is called on a batch that was already executed."""

    def __init__(self, batch_id: Optional[str] = None):
        super().__init__(
            "Batch already executed",
            config_key="batch",
            error_code="BATCH_ALREADY_EXECUTED"
        )
        self.details["batch_id"] = batch_id


class BatchNotStartedError(ConfigurationError):
    """Raised when a batch operation needs an identity the batch does not have yet."""

    def __init__(self, operation: str):
        super().__init__(
            f"Batch not started: cannot {operation} before the batch is queued",
            config_key="batch_id",
            error_code="BATCH_NOT_STARTED"
        )
        self.details["operation"] = operation


class JobNotOpenError(ConfigurationError):
    """Raised when a closed or aborted job is asked for an operation requiring its identity."""

    def __init__(self, state: str):
        super().__init__(
            f"Job has no identity (state: {state})",
            config_key="job_id",
            error_code="JOB_NOT_OPEN"
        )
        self.details["state"] = state


class QueryParseError(ConfigurationError):
    """Raised when no object type can be found in a SOQL query."""

    def __init__(self, soql: str):
        super().__init__(
            "No sobject type found in query, maybe caused by invalid SOQL",
            config_key="soql",
            error_code="QUERY_PARSE_ERROR"
        )
        self.details["soql"] = soql


class BulkApiError(BulkOrchestratorError):
    """Raised when the remote service rejects a request with an error envelope."""

    def __init__(self, error_code: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code=error_code, details=details)


class BatchFailedError(BulkApiError):
    """Raised when the remote reports a batch as failed without processing any record."""

    def __init__(self, job_id: Optional[str], batch_id: Optional[str], message: str):
        super().__init__(
            "BATCH_FAILED",
            message,
            details={"job_id": job_id, "batch_id": batch_id}
        )
        self.job_id = job_id
        self.batch_id = batch_id


class PollingTimeoutError(BulkOrchestratorError):
    """Raised when a batch does not reach a terminal state before the polling deadline."""

    def __init__(self, job_id: str, batch_id: str, timeout_seconds: float):
        super().__init__(
            f"Polling time out. Job Id = {job_id} , batch Id = {batch_id}",
            error_code="POLLING_TIMEOUT",
            details={"job_id": job_id, "batch_id": batch_id, "timeout_seconds": timeout_seconds}
        )
        self.job_id = job_id
        self.batch_id = batch_id
        self.timeout_seconds = timeout_seconds


class TransportError(BulkOrchestratorError):
    """Raised when the HTTP exchange itself fails."""

    def __init__(self, message: str, status_code: Optional[int] = None, error_code: str = "TRANSPORT_ERROR"):
        super().__init__(
            message,
            error_code=error_code,
            details={"status_code": status_code}
        )
        self.status_code = status_code


class SessionExpiredError(TransportError):
    """Raised when the session expired and could not be refreshed."""

    def __init__(self, message: str = "Session expired or invalid"):
        super().__init__(message, status_code=400, error_code="SESSION_EXPIRED")
