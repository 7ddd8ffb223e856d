"""
Job and batch data models for Bulk Job Orchestrator

Defines the operation kinds, lifecycle states and the descriptors the remote
service reports for jobs and batches.
"""

from enum import Enum
from typing import Optional, Dict, Any
from dataclasses import dataclass, field


class BulkOperation(Enum):
    """Operation kind of a bulk job, using the remote spelling as value."""
    INSERT = "insert"
    UPDATE = "update"
    UPSERT = "upsert"
    DELETE = "delete"
    HARD_DELETE = "hardDelete"
    QUERY = "query"
    QUERY_ALL = "queryAll"

    @classmethod
    def normalize(cls, value: Any) -> "BulkOperation":
        """Map a case-insensitive operation name to its canonical member."""
        if isinstance(value, cls):
            return value
        lowered = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == lowered:
                return member
        raise ValueError(f"Unknown bulk operation: {value!r}")

    @property
    def is_query(self) -> bool:
        return self in (BulkOperation.QUERY, BulkOperation.QUERY_ALL)


class JobState(Enum):
    """Job lifecycle state."""
    UNKNOWN = "Unknown"
    OPEN = "Open"
    CLOSED = "Closed"
    ABORTED = "Aborted"
    FAILED = "Failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.CLOSED, JobState.ABORTED, JobState.FAILED)


class BatchState(Enum):
    """Batch lifecycle state as reported by the remote service."""
    QUEUED = "Queued"
    IN_PROGRESS = "InProgress"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NOT_PROCESSED = "NotProcessed"

    @property
    def is_terminal(self) -> bool:
        return self in (BatchState.COMPLETED, BatchState.FAILED, BatchState.NOT_PROCESSED)


class ConcurrencyMode(Enum):
    """How the remote service schedules the batches of a job."""
    SERIAL = "Serial"
    PARALLEL = "Parallel"


def _to_int(value: Any) -> int:
    if value in (None, ""):
        return 0
    return int(float(value))


@dataclass
class BulkOptions:
    """Optional job creation parameters."""

    ext_id_field: Optional[str] = None
    concurrency_mode: Optional[ConcurrencyMode] = None
    assignment_rule_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "BulkOptions":
        """Accept both the remote camelCase keys and snake_case keys."""
        data = data or {}
        mode = data.get("concurrency_mode", data.get("concurrencyMode"))
        if mode is not None and not isinstance(mode, ConcurrencyMode):
            mode = ConcurrencyMode(str(mode).capitalize())
        return cls(
            ext_id_field=data.get("ext_id_field", data.get("extIdField")),
            concurrency_mode=mode,
            assignment_rule_id=data.get("assignment_rule_id", data.get("assignmentRuleId"))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ext_id_field": self.ext_id_field,
            "concurrency_mode": self.concurrency_mode.value if self.concurrency_mode else None,
            "assignment_rule_id": self.assignment_rule_id
        }


@dataclass
class JobInfo:
    """Job descriptor returned by the remote service."""

    id: str
    object: Optional[str] = None
    operation: Optional[BulkOperation] = None
    state: JobState = JobState.UNKNOWN
    external_id_field_name: Optional[str] = None
    concurrency_mode: Optional[str] = None
    content_type: Optional[str] = None
    created_date: Optional[str] = None
    number_batches_total: int = 0
    number_batches_completed: int = 0
    number_records_processed: int = 0
    number_records_failed: int = 0
    raw: Dict[str, Any] = field(default_factory=dict, repr=False)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "JobInfo":
        """Create job info from a parsed ``jobInfo`` element."""
        operation = data.get("operation")
        state = data.get("state")
        return cls(
            id=data["id"],
            object=data.get("object"),
            operation=BulkOperation.normalize(operation) if operation else None,
            state=JobState(state) if state else JobState.UNKNOWN,
            external_id_field_name=data.get("externalIdFieldName"),
            concurrency_mode=data.get("concurrencyMode"),
            content_type=data.get("contentType"),
            created_date=data.get("createdDate"),
            number_batches_total=_to_int(data.get("numberBatchesTotal")),
            number_batches_completed=_to_int(data.get("numberBatchesCompleted")),
            number_records_processed=_to_int(data.get("numberRecordsProcessed")),
            number_records_failed=_to_int(data.get("numberRecordsFailed")),
            raw=dict(data)
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "object": self.object,
            "operation": self.operation.value if self.operation else None,
            "state": self.state.value,
            "external_id_field_name": self.external_id_field_name,
            "concurrency_mode": self.concurrency_mode,
            "content_type": self.content_type,
            "created_date": self.created_date,
            "number_batches_total": self.number_batches_total,
            "number_batches_completed": self.number_batches_completed,
            "number_records_processed": self.number_records_processed,
            "number_records_failed": self.number_records_failed
        }


@dataclass
class BatchInfo:
    """Batch descriptor returned by the remote service."""

    id: str
    job_id: str
    state: BatchState
    state_message: Optional[str] = None
    number_records_processed: int = 0
    number_records_failed: int = 0
    total_processing_time: int = 0
    created_date: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchInfo":
        """Create batch info from a parsed ``batchInfo`` element."""
        return cls(
            id=data["id"],
            job_id=data.get("jobId"),
            state=BatchState(data["state"]),
            state_message=data.get("stateMessage"),
            number_records_processed=_to_int(data.get("numberRecordsProcessed")),
            number_records_failed=_to_int(data.get("numberRecordsFailed")),
            total_processing_time=_to_int(data.get("totalProcessingTime")),
            created_date=data.get("createdDate")
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "job_id": self.job_id,
            "state": self.state.value,
            "state_message": self.state_message,
            "number_records_processed": self.number_records_processed,
            "number_records_failed": self.number_records_failed,
            "total_processing_time": self.total_processing_time,
            "created_date": self.created_date
        }

