"""
Bulk Job Orchestrator

Asynchronous driver for a remote bulk-processing API: large record sets are
streamed to the remote as CSV batches, processed out-of-band, polled until they
settle, and their results decoded back into records.

Key Features:
- Lazy job opening on first uploaded byte
- Streaming CSV upload and download with a null sentinel
- Deadline-bounded batch polling
- Per-record outcome reconciliation, including partial failures
- Automatic job closure once a batch settles
- Bulk queries merged across result parts into one record stream

Usage:
    from bulk_job_orchestrator import BulkOrchestrator, HttpTransport

    transport = HttpTransport("https://example.my.salesforce.com", access_token)
    async with BulkOrchestrator(transport, poll_interval=2.0, poll_timeout=600.0) as bulk:
        results = await bulk.load("Account", "insert", [{"Name": "Acme"}])
        for result in results:
            print(result.id, result.success, result.errors)

        async for record in bulk.query("SELECT Id, Name FROM Account"):
            print(record)
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Core orchestrator
from .core.orchestrator import BulkOrchestrator, parse_query_object

# Data models
from .models.job import (
    BulkOperation,
    JobState,
    BatchState,
    ConcurrencyMode,
    BulkOptions,
    JobInfo,
    BatchInfo
)
from .models.result import LoadResult, QueryResultRef, summarize_load_results

# Services (for advanced usage)
from .services.job import Job
from .services.batch import Batch
from .services.streams import RecordStream, BatchStream

# Transport and codec
from .transport.base import BaseTransport, BulkRequest
from .transport.http import HttpTransport
from .codec.csv_codec import CsvCodec, DEFAULT_NULL_VALUE

# Utilities
from .utils.config import BulkConfig
from .utils.events import Signal
from .utils.logger import setup_logger, get_logger

# Exceptions
from .core.exceptions import (
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
    # Core
    "BulkOrchestrator",
    "parse_query_object",

    # Models
    "BulkOperation",
    "JobState",
    "BatchState",
    "ConcurrencyMode",
    "BulkOptions",
    "JobInfo",
    "BatchInfo",
    "LoadResult",
    "QueryResultRef",
    "summarize_load_results",

    # Services
    "Job",
    "Batch",
    "RecordStream",
    "BatchStream",

    # Transport and codec
    "BaseTransport",
    "BulkRequest",
    "HttpTransport",
    "CsvCodec",
    "DEFAULT_NULL_VALUE",

    # Utilities
    "BulkConfig",
    "Signal",
    "setup_logger",
    "get_logger",

    # Exceptions
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
    "SessionExpiredError",

    # Package metadata
    "__version__",
    "__license__"
]

# Package-level configuration
import logging
logging.getLogger(__name__).addHandler(logging.NullHandler())
