"""
Job service for Bulk Job Orchestrator

A ``Job`` mirrors one remote asynchronous processing unit: it opens, checks,
closes and aborts the remote job and creates the batches submitted to it.
"""

import asyncio
from typing import Any, Dict, List, Optional, Union, TYPE_CHECKING

from ..core.exceptions import ConfigurationError, JobNotOpenError
from ..models.job import BatchInfo, BulkOperation, BulkOptions, JobInfo, JobState
from ..transport.base import BulkRequest, as_list
from ..transport.http import build_xml
from ..utils.events import Signal
from ..utils.logger import get_logger, set_log_context

if TYPE_CHECKING:
    from ..core.orchestrator import BulkOrchestrator
    from .batch import Batch

XML_HEADERS = {"Content-Type": "application/xml; charset=utf-8"}
XML_RESPONSE = "application/xml"


class Job:
    """
    One remote bulk job.

    State starts at ``Unknown`` without an id, or ``Open`` when bound to a
    known id. Every state-changing call that fails is broadcast on ``failed``
    and re-raised to the caller.
    """

    def __init__(
        self,
        bulk: "BulkOrchestrator",
        object_type: Optional[str],
        operation: Union[BulkOperation, str, None],
        options: Optional[BulkOptions] = None,
        job_id: Optional[str] = None
    ):
        self.bulk = bulk
        self.object_type = object_type
        try:
            self.operation = BulkOperation.normalize(operation) if operation else None
        except ValueError as e:
            raise ConfigurationError(str(e), config_key="operation") from e
        self.options = options or BulkOptions()
        self.id = job_id
        self.state = JobState.OPEN if job_id else JobState.UNKNOWN
        self.batches: Dict[str, "Batch"] = {}

        self.opened = Signal("opened")
        self.closed = Signal("closed")
        self.aborted = Signal("aborted")
        self.failed = Signal("failed")

        self._pending_open: Optional["asyncio.Future[JobInfo]"] = None
        self._job_info: Optional["asyncio.Future[JobInfo]"] = None

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="job")

    @property
    def open_requested(self) -> bool:
        return self._pending_open is not None

    @property
    def open_failed(self) -> bool:
        pending = self._pending_open
        return pending is not None and pending.done() and not pending.cancelled() and pending.exception() is not None

    def info(self) -> "asyncio.Future[JobInfo]":
        """Return the cached job info, checking the remote once if nothing is cached."""
        if self._job_info is None:
            self._job_info = self.check()
        return self._job_info

    def open(self) -> "asyncio.Future[JobInfo]":
        """
        Open the remote job.

        Idempotent: a pending or completed open is returned as is.

        Raises:
            ConfigurationError: If object type or operation is missing
        """
        if not self.object_type or not self.operation:
            raise ConfigurationError("type / operation is required to open a new job", config_key="job")

        if self._pending_open is None:
            self._pending_open = asyncio.ensure_future(self._open())
            self._job_info = self._pending_open
        return self._pending_open

    async def _open(self) -> JobInfo:
        body = build_xml("jobInfo", {
            "operation": self.operation.value,
            "object": self.object_type,
            "externalIdFieldName": self.options.ext_id_field,
            "concurrencyMode": self.options.concurrency_mode.value if self.options.concurrency_mode else None,
            "assignmentRuleId": self.options.assignment_rule_id,
            "contentType": "CSV"
        })
        try:
            response = await self.bulk.request(BulkRequest(
                method="POST",
                path="/job",
                body=body,
                headers=dict(XML_HEADERS),
                response_type=XML_RESPONSE
            ))
            job_info = JobInfo.from_dict(response["jobInfo"])
        except Exception as e:
            self.logger.error("Failed to open job", extra={
                "object_type": self.object_type,
                "operation": self.operation.value,
                "error": str(e)
            })
            self.failed.emit(e)
            raise

        self.id = job_info.id
        self.state = job_info.state
        self.logger.info("Job opened", extra={"job_id": self.id, "state": self.state.value})
        self.opened.emit(job_info)
        return job_info

    def check(self) -> "asyncio.Future[JobInfo]":
        """Fetch the latest job info from the remote and refresh the cached fields."""
        self._job_info = asyncio.ensure_future(self._check())
        return self._job_info

    async def _check(self) -> JobInfo:
        job_id = await self._wait_id_assignment()
        response = await self.bulk.request(BulkRequest(
            method="GET",
            path=f"/job/{job_id}",
            response_type=XML_RESPONSE
        ))
        job_info = JobInfo.from_dict(response["jobInfo"])
        self.logger.debug("Job checked", extra=job_info.to_dict())
        self.id = job_info.id
        self.object_type = job_info.object
        self.operation = job_info.operation
        self.state = job_info.state
        return job_info

    async def _wait_id_assignment(self) -> str:
        if self.id:
            return self.id
        if self.state.is_terminal:
            raise JobNotOpenError(self.state.value)
        job_info = await self.open()
        return job_info.id

    def create_batch(self) -> "Batch":
        """Create a new batch; it registers itself once the remote assigns its id."""
        from .batch import Batch

        batch = Batch(self)
        batch.queued.connect(lambda batch_info: self.batches.__setitem__(batch.id, batch))
        return batch

    def batch(self, batch_id: str) -> "Batch":
        """Get the batch bound to ``batch_id``, creating and registering it if needed."""
        from .batch import Batch

        batch = self.batches.get(batch_id)
        if batch is None:
            batch = Batch(self, batch_id)
            self.batches[batch_id] = batch
        return batch

    async def list(self) -> List[BatchInfo]:
        """List all batches of this job."""
        job_id = await self._wait_id_assignment()
        response = await self.bulk.request(BulkRequest(
            method="GET",
            path=f"/job/{job_id}/batch",
            response_type=XML_RESPONSE
        ))
        batch_list = (response or {}).get("batchInfoList") or {}
        batch_infos = [BatchInfo.from_dict(item) for item in as_list(batch_list.get("batchInfo"))]
        self.logger.debug("Listed batches", extra={"job_id": job_id, "batch_count": len(batch_infos)})
        return batch_infos

    async def close(self) -> JobInfo:
        """Close the job so the remote stops accepting batches."""
        return await self._transition(JobState.CLOSED, self.closed)

    async def abort(self) -> JobInfo:
        """Abort the job; unprocessed batches are dropped by the remote."""
        return await self._transition(JobState.ABORTED, self.aborted)

    async def _transition(self, state: JobState, signal: Signal) -> JobInfo:
        try:
            self._job_info = asyncio.ensure_future(self._change_state(state))
            job_info = await self._job_info
        except Exception as e:
            self.logger.error("Job state change failed", extra={
                "job_id": self.id,
                "target_state": state.value,
                "error": str(e)
            })
            self.failed.emit(e)
            raise

        self.logger.info("Job state changed", extra={"job_id": job_info.id, "state": job_info.state.value})
        self.id = None
        signal.emit(job_info)
        return job_info

    async def _change_state(self, state: JobState) -> JobInfo:
        job_id = await self._wait_id_assignment()
        response = await self.bulk.request(BulkRequest(
            method="POST",
            path=f"/job/{job_id}",
            body=build_xml("jobInfo", {"state": state.value}),
            headers=dict(XML_HEADERS),
            response_type=XML_RESPONSE
        ))
        job_info = JobInfo.from_dict(response["jobInfo"])
        self.state = job_info.state
        return job_info

    def __repr__(self) -> str:
        return (
            f"Job(id={self.id!r}, object_type={self.object_type!r}, "
            f"operation={self.operation.value if self.operation else None!r}, state={self.state.value!r})"
        )
