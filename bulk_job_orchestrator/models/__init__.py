"""
Data models for Bulk Job Orchestrator

Operation kinds, job and batch descriptors, and batch result envelopes.
"""

from .job import (
    BulkOperation,
    JobState,
    BatchState,
    ConcurrencyMode,
    BulkOptions,
    JobInfo,
    BatchInfo
)
from .result import (
    LoadResult,
    QueryResultRef,
    BatchResult,
    summarize_load_results
)

__all__ = [
    "BulkOperation",
    "JobState",
    "BatchState",
    "ConcurrencyMode",
    "BulkOptions",
    "JobInfo",
    "BatchInfo",
    "LoadResult",
    "QueryResultRef",
    "BatchResult",
    "summarize_load_results"
]
