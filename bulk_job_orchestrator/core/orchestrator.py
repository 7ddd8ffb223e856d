"""
BulkOrchestrator: facade over jobs and batches.

Creates jobs and batches, wires the cross-cutting behaviour (poll once the
batch is queued, close the job once the batch settles) and exposes the bulk
query path that merges every result part into one record stream.
"""

import asyncio
import re
from typing import Any, AsyncIterator, Dict, List, Mapping, Optional, Set, Union, TYPE_CHECKING

from ..codec.csv_codec import CsvCodec, DEFAULT_NULL_VALUE
from ..models.job import BulkOperation, BulkOptions
from ..models.result import QueryResultRef
from ..services.batch import Batch, BatchInput
from ..services.job import Job
from ..services.streams import RecordStream
from ..transport.base import BaseTransport, BulkRequest
from ..utils.logger import get_logger, set_log_context
from .exceptions import PollingTimeoutError, QueryParseError

if TYPE_CHECKING:
    from ..utils.config import BulkConfig

_SUBQUERY = re.compile(r"\([\s\S]+\)")
_FROM_CLAUSE = re.compile(r"FROM\s+(\w+)", re.IGNORECASE)


def parse_query_object(soql: str) -> str:
    """
    Extract the object type queried by a SOQL statement.

    Raises:
        QueryParseError: If no ``FROM <object>`` clause is found
    """
    match = _FROM_CLAUSE.search(_SUBQUERY.sub("", soql))
    if not match:
        raise QueryParseError(soql)
    return match.group(1)


class BulkOrchestrator:
    """
    Main entry point for bulk loads and queries.

    Provides:
    - job creation and lookup by id
    - one-call loads with automatic polling and job closure
    - bulk queries streamed as one merged record sequence
    """

    def __init__(
        self,
        transport: BaseTransport,
        poll_interval: float = 1.0,
        poll_timeout: float = 10.0,
        null_value: Optional[str] = DEFAULT_NULL_VALUE,
        upload_queue_size: int = 64
    ):
        """
        Initialize the BulkOrchestrator.

        Args:
            transport: Transport issuing requests against the bulk endpoint
            poll_interval: Seconds between batch status checks
            poll_timeout: Seconds after which polling gives up
            null_value: Sentinel for explicit nulls on the wire
            upload_queue_size: Encoded chunks buffered ahead of the upload request
        """
        self.transport = transport
        self.poll_interval = poll_interval
        self.poll_timeout = poll_timeout
        self.codec = CsvCodec(null_value=null_value)
        self.upload_queue_size = upload_queue_size

        self._cleanup_tasks: Set[asyncio.Task] = set()

        self.logger = get_logger(__name__)
        set_log_context(self.logger, component="orchestrator")

    @classmethod
    def from_config(cls, config: "BulkConfig") -> "BulkOrchestrator":
        """Build an orchestrator with an HTTP transport from configuration."""
        from ..transport.http import HttpTransport

        config.require_connection()
        transport = HttpTransport(
            instance_url=config.instance_url,
            access_token=config.access_token,
            api_version=config.api_version,
            timeout=config.request_timeout
        )
        return cls(
            transport,
            poll_interval=config.poll_interval,
            poll_timeout=config.poll_timeout,
            null_value=config.null_value,
            upload_queue_size=config.upload_queue_size
        )

    # Transport access used by jobs and batches

    async def request(self, request: BulkRequest) -> Any:
        return await self.transport.request(request)

    def stream(self, request: BulkRequest) -> AsyncIterator[bytes]:
        return self.transport.stream(request)

    # Jobs

    def create_job(
        self,
        object_type: str,
        operation: Union[BulkOperation, str],
        options: Union[BulkOptions, Mapping[str, Any], None] = None
    ) -> Job:
        """Create a job that is opened lazily on first upload."""
        if not isinstance(options, BulkOptions):
            options = BulkOptions.from_dict(options)
        return Job(self, object_type, operation, options)

    def job(self, job_id: str) -> Job:
        """Get a job bound to an existing remote job id."""
        return Job(self, None, None, None, job_id)

    # Loads

    def load(
        self,
        object_type: str,
        operation: Union[BulkOperation, str],
        options: Union[BulkOptions, Mapping[str, Any], BatchInput] = None,
        input: BatchInput = None
    ) -> Batch:
        """
        Create a job and a batch and start the load.

        The options argument may be omitted, in which case the third
        positional argument is taken as the input. Must be called from a
        running event loop.

        Returns:
            The batch, awaitable to its result envelope
        """
        if options is not None and not isinstance(options, (BulkOptions, Mapping)):
            options, input = None, options

        job = self.create_job(object_type, operation, options)
        batch = job.create_batch()
        settled = False

        def cleanup(*_):
            nonlocal settled
            if settled:
                return
            settled = True
            self._schedule_close(job)

        def cleanup_on_error(error: BaseException):
            if isinstance(error, PollingTimeoutError):
                self.logger.warning("Polling timed out, leaving job open", extra={
                    "job_id": error.job_id,
                    "batch_id": error.batch_id
                })
                return
            cleanup()

        def start_polling(batch_info):
            batch.poll(self.poll_interval, self.poll_timeout)

        batch.responded.connect(cleanup)
        batch.failed.connect(cleanup_on_error)
        batch.queued.connect(start_polling)

        self.logger.info("Starting bulk load", extra={
            "object_type": object_type,
            "operation": job.operation.value
        })
        return batch.execute(input)

    def _schedule_close(self, job: Job) -> None:
        if job.id is None and (not job.open_requested or job.open_failed):
            return
        task = asyncio.ensure_future(self._close_job(job))
        self._cleanup_tasks.add(task)
        task.add_done_callback(self._cleanup_tasks.discard)

    async def _close_job(self, job: Job) -> None:
        try:
            await job.close()
        except Exception as e:
            self.logger.error("Failed to close job after batch settled", extra={
                "job_id": job.id,
                "error": str(e)
            })

    # Queries

    def query(self, soql: str) -> RecordStream:
        """
        Run a bulk query and stream its records.

        Result parts are fetched one after the other in the order the remote
        reports them. Failures surface on the stream (``failed`` signal and
        raised during iteration), not from this call.

        Raises:
            QueryParseError: If the SOQL has no ``FROM <object>`` clause
        """
        object_type = parse_query_object(soql)
        batch = self.load(object_type, BulkOperation.QUERY, soql)
        stream = RecordStream()

        async def resolve_results() -> List[QueryResultRef]:
            try:
                return await batch
            except Exception as e:
                stream.fail(e)
                raise

        results_task = asyncio.ensure_future(resolve_results())
        results_task.add_done_callback(lambda task: task.cancelled() or task.exception())
        stream.attach(self._merge_result_parts(results_task))
        return stream

    async def _merge_result_parts(self, results_task: "asyncio.Future[List[QueryResultRef]]") -> AsyncIterator[Dict[str, Any]]:
        for result in await results_task:
            part = self.job(result.job_id).batch(result.batch_id).result(result.id)
            async for record in part:
                yield record

    # Lifecycle

    async def stop(self) -> None:
        """Wait for pending job closures, then release the transport."""
        self.logger.info("Stopping BulkOrchestrator", extra={
            "pending_closures": len(self._cleanup_tasks)
        })
        while self._cleanup_tasks:
            await asyncio.gather(*list(self._cleanup_tasks))
        await self.transport.close()

    async def __aenter__(self) -> "BulkOrchestrator":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()
