"""
Batch service for Bulk Job Orchestrator

A ``Batch`` is one chunk of input submitted to a job. It owns the upload
pipeline (records -> CSV -> streamed request), triggers execution, polls the
remote until the batch settles and decodes the result envelope.
"""

import asyncio
from typing import Any, AsyncIterable, Dict, Iterable, Mapping, Optional, Tuple, Union, TYPE_CHECKING

from ..core.exceptions import (
    BatchAlreadyExecutedError,
    BatchFailedError,
    BatchNotStartedError,
    ConfigurationError,
    PollingTimeoutError
)
from ..models.job import BatchInfo, BatchState, BulkOperation
from ..models.result import BatchResult, LoadResult, QueryResultRef
from ..transport.base import BulkRequest, as_list
from ..utils.events import Signal
from ..utils.logger import get_logger, set_log_context
from .streams import BatchStream, RecordStream, UploadChannel

if TYPE_CHECKING:
    from .job import Job

BatchInput = Union[str, bytes, Iterable[Mapping[str, Any]], AsyncIterable[Any], None]

# Keys of API-shaped records that never go on the wire
_RECORD_META_FIELDS = ("type", "attributes")


def shape_record(record: Mapping[str, Any], operation: Optional[BulkOperation]) -> Dict[str, Any]:
    """
    Reduce a record to the columns the operation accepts.

    insert drops ``Id``; delete and hardDelete keep only ``Id``; everything
    else keeps ``Id`` (when given) followed by the remaining fields.
    """
    rest = {k: v for k, v in record.items() if k != "Id" and k not in _RECORD_META_FIELDS}
    if operation is BulkOperation.INSERT:
        return rest
    if operation in (BulkOperation.DELETE, BulkOperation.HARD_DELETE):
        return {"Id": record.get("Id")}
    if "Id" in record:
        return {"Id": record["Id"], **rest}
    return rest


class Batch:
    """
    One batch of a bulk job.

    Signals:
        queued: the remote accepted the upload and assigned an id (BatchInfo)
        progress: a poll tick saw a non-terminal state (BatchInfo)
        responded: the result envelope was retrieved (list)
        failed: any failure of upload, polling or retrieval (exception)
    """

    def __init__(self, job: "Job", batch_id: Optional[str] = None):
        self.job = job
        self.bulk = job.bulk
        self.id = batch_id
        self.state: Optional[BatchState] = None
        self.state_message: Optional[str] = None
        self.number_records_processed = 0
        self.number_records_failed = 0
        self.total_processing_time = 0

        self.queued = Signal("queued")
        self.progress = Signal("progress")
        self.responded = Signal("responded")
        self.failed = Signal("failed")

        self._codec = self.bulk.codec
        self._upload = UploadChannel(
            self._codec.encoder(),
            on_start=self._start_upload,
            maxsize=self.bulk.upload_queue_size,
            encoding=self._codec.encoding
        )
        self._upload_task: Optional[asyncio.Task] = None
        self._feed_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._result: Optional["asyncio.Future[BatchResult]"] = None
        self._error: Optional[BaseException] = None

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="batch")

    # Upload side

    async def write(self, record: Mapping[str, Any]) -> None:
        """Shape one record for the job's operation and queue it for upload."""
        await self._upload.write_record(shape_record(record, self.job.operation))

    async def write_raw(self, data: Union[str, bytes]) -> None:
        """Queue pre-encoded CSV text for upload."""
        await self._upload.write_raw(data)

    async def end(self) -> None:
        """Close the upload sink; the upload request sees end-of-stream."""
        await self._upload.end()
        if not self._upload.started:
            self._fail(ConfigurationError("Batch has no data to upload", config_key="input"))

    def stream(self) -> BatchStream:
        """Return the duplex handle: write records in, read the outcome out."""
        if self._result is None:
            self.execute()
        return BatchStream(self)

    def _start_upload(self) -> None:
        self._upload_task = asyncio.ensure_future(self._run_upload())

    async def _run_upload(self) -> None:
        try:
            await self.job.open()
            response = await self.bulk.request(BulkRequest(
                method="POST",
                path=f"/job/{self.job.id}/batch",
                body=self._upload.chunks(),
                headers={"Content-Type": "text/csv"},
                response_type="application/xml"
            ))
            batch_info = BatchInfo.from_dict(response["batchInfo"])
        except Exception as e:
            self.logger.error("Batch upload failed", extra={"job_id": self.job.id, "error": str(e)})
            self._upload.abort(e)
            self._fail(e)
            return

        self.id = batch_info.id
        self._update(batch_info)
        self.logger.info("Batch queued", extra={
            "job_id": self.job.id,
            "batch_id": self.id,
            "bytes_uploaded": self._upload.bytes_written
        })
        self.queued.emit(batch_info)

    # Execution

    def execute(self, input: BatchInput = None) -> "Batch":
        """
        Start the batch with the given input.

        Args:
            input: async iterable of records or CSV chunks, a list of records,
                or raw CSV text. ``None`` leaves writing to the caller.

        Returns:
            This batch, awaitable to its result envelope

        Raises:
            BatchAlreadyExecutedError: If the batch was executed before
        """
        if self._result is not None:
            raise BatchAlreadyExecutedError(self.id)

        loop = asyncio.get_running_loop()
        self._result = loop.create_future()
        self.responded.connect(self._resolve)
        self.failed.connect(self._reject)

        if input is not None:
            self._feed_task = asyncio.ensure_future(self._feed(input))
        return self

    run = execute
    exec_ = execute

    async def _feed(self, input: BatchInput) -> None:
        try:
            if isinstance(input, (str, bytes)):
                await self.write_raw(input)
            elif hasattr(input, "__aiter__"):
                async for item in input:
                    if isinstance(item, (str, bytes)):
                        await self.write_raw(item)
                    else:
                        await self.write(item)
            else:
                for record in input:
                    await self.write({
                        key: ("true" if value else "false") if isinstance(value, bool) else value
                        for key, value in record.items()
                    })
            await self.end()
        except Exception as e:
            self._fail(e)

    def _resolve(self, results: BatchResult) -> None:
        if not self._result.done():
            self._result.set_result(results)

    def _reject(self, error: BaseException) -> None:
        if not self._result.done():
            self._result.set_exception(error)

    def _fail(self, error: BaseException) -> None:
        if error is self._error:
            return
        self._error = error
        self.failed.emit(error)

    def __await__(self):
        if self._result is None:
            self.execute()
        return self._result.__await__()

    # Status

    def _require_ids(self, operation: str) -> Tuple[str, str]:
        if not self.job.id or not self.id:
            raise BatchNotStartedError(operation)
        return self.job.id, self.id

    def _update(self, batch_info: BatchInfo) -> None:
        self.state = batch_info.state
        self.state_message = batch_info.state_message
        self.number_records_processed = batch_info.number_records_processed
        self.number_records_failed = batch_info.number_records_failed
        self.total_processing_time = batch_info.total_processing_time

    async def check(self) -> BatchInfo:
        """Fetch the latest batch status from the remote."""
        job_id, batch_id = self._require_ids("check")
        response = await self.bulk.request(BulkRequest(
            method="GET",
            path=f"/job/{job_id}/batch/{batch_id}",
            response_type="application/xml"
        ))
        batch_info = BatchInfo.from_dict(response["batchInfo"])
        self._update(batch_info)
        self.logger.debug("Batch checked", extra=batch_info.to_dict())
        return batch_info

    def poll(self, interval: float, timeout: float) -> asyncio.Task:
        """
        Poll the batch every ``interval`` seconds until it settles.

        Gives up with ``PollingTimeoutError`` once ``timeout`` seconds have
        passed since polling started. The remote batch is left untouched.
        """
        job_id, batch_id = self._require_ids("poll")
        self._poll_task = asyncio.ensure_future(self._poll(job_id, batch_id, interval, timeout))
        return self._poll_task

    async def _poll(self, job_id: str, batch_id: str, interval: float, timeout: float) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        while True:
            await asyncio.sleep(interval)
            if loop.time() > deadline:
                self.logger.warning("Batch polling timed out", extra={
                    "job_id": job_id,
                    "batch_id": batch_id,
                    "timeout_seconds": timeout
                })
                self._fail(PollingTimeoutError(job_id, batch_id, timeout))
                return

            try:
                batch_info = await self.check()
            except Exception as e:
                self._fail(e)
                return

            if batch_info.state is BatchState.FAILED:
                if batch_info.number_records_processed > 0:
                    await self._retrieve_settled()
                else:
                    self._fail(BatchFailedError(job_id, batch_id, batch_info.state_message or "Batch failed"))
                return
            if batch_info.state is BatchState.NOT_PROCESSED:
                self._fail(BatchFailedError(job_id, batch_id, batch_info.state_message or "Batch was not processed"))
                return
            if batch_info.state is BatchState.COMPLETED:
                await self._retrieve_settled()
                return

            self.progress.emit(batch_info)

    async def _retrieve_settled(self) -> None:
        try:
            results = await self._fetch_results()
        except Exception as e:
            self._fail(e)
            return
        self.responded.emit(results)

    # Results

    async def retrieve(self) -> BatchResult:
        """Fetch and decode the result envelope of the batch."""
        try:
            results = await self._fetch_results()
        except Exception as e:
            self._fail(e)
            raise
        self.responded.emit(results)
        return results

    async def _fetch_results(self) -> BatchResult:
        job_id, batch_id = self._require_ids("retrieve")
        try:
            response = await self.bulk.request(BulkRequest(
                method="GET",
                path=f"/job/{job_id}/batch/{batch_id}/result"
            ))
        except Exception as e:
            self.logger.error("Failed to retrieve batch result", extra={
                "job_id": job_id,
                "batch_id": batch_id,
                "error": str(e)
            })
            raise

        query = self.job.operation is not None and self.job.operation.is_query
        if query or (isinstance(response, dict) and "result-list" in response):
            result_list = (response or {}).get("result-list") or {}
            results: BatchResult = [
                QueryResultRef(id=result_id, batch_id=batch_id, job_id=job_id)
                for result_id in as_list(result_list.get("result"))
            ]
        else:
            results = [LoadResult.from_row(row) for row in as_list(response)]

        self.logger.info("Batch result retrieved", extra={
            "job_id": job_id,
            "batch_id": batch_id,
            "result_count": len(results)
        })
        return results

    def result(self, result_id: str) -> RecordStream:
        """Open one query result part as a lazily decoded record stream."""
        job_id, batch_id = self._require_ids("fetch result")
        chunks = self.bulk.stream(BulkRequest(
            method="GET",
            path=f"/job/{job_id}/batch/{batch_id}/result/{result_id}",
            response_type="application/octet-stream"
        ))
        return RecordStream(self._codec.decode(chunks))

    def __repr__(self) -> str:
        return f"Batch(id={self.id!r}, job_id={self.job.id!r}, state={self.state.value if self.state else None!r})"
