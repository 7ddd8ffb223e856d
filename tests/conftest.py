"""
Shared fixtures: an in-memory bulk endpoint behind the transport interface.
"""

import re
from typing import Any, AsyncIterator, Dict, List, Optional

import pytest

from bulk_job_orchestrator.codec.csv_codec import CsvCodec
from bulk_job_orchestrator.core.exceptions import BulkApiError, TransportError
from bulk_job_orchestrator.core.orchestrator import BulkOrchestrator
from bulk_job_orchestrator.transport.base import BaseTransport, BulkRequest
from bulk_job_orchestrator.transport.http import parse_xml

_JOB = re.compile(r"^/job/(?P<job>[^/]+)$")
_BATCHES = re.compile(r"^/job/(?P<job>[^/]+)/batch$")
_BATCH = re.compile(r"^/job/(?P<job>[^/]+)/batch/(?P<batch>[^/]+)$")
_RESULTS = re.compile(r"^/job/(?P<job>[^/]+)/batch/(?P<batch>[^/]+)/result$")
_RESULT_PART = re.compile(r"^/job/(?P<job>[^/]+)/batch/(?P<batch>[^/]+)/result/(?P<result>[^/]+)$")


def _one_or_many(items: List[Any]) -> Any:
    """Mirror how a parsed XML document reports zero, one or several children."""
    if not items:
        return None
    return items[0] if len(items) == 1 else items


class FakeBulkTransport(BaseTransport):
    """
    Scripted bulk endpoint.

    Every batch walks through ``batch_script`` (one entry per status check,
    the last entry repeating). Load results echo the uploaded rows unless
    ``load_results`` is set; query batches report ``query_result_ids`` and
    serve ``result_parts`` in small chunks.
    """

    def __init__(self):
        self.jobs: Dict[str, Dict[str, Any]] = {}
        self.batches: Dict[str, Dict[str, Any]] = {}
        self.uploads: Dict[str, bytes] = {}
        self.requests: List[BulkRequest] = []
        self.failures: List[tuple] = []
        self.batch_script: List[Dict[str, Any]] = [{"state": "Completed"}]
        self.load_results: Optional[List[Dict[str, str]]] = None
        self.query_result_ids: List[str] = ["752R0"]
        self.result_parts: Dict[str, bytes] = {}
        self.chunk_size = 7
        self.closed = False
        self._job_seq = 0
        self._batch_seq = 0

    # Test helpers

    def fail(self, method: str, pattern: str, error: Exception) -> None:
        """Raise ``error`` for requests whose path fully matches ``pattern``."""
        self.failures.append((method, re.compile(pattern), error))

    def calls(self, method: str, pattern: str) -> List[BulkRequest]:
        regex = re.compile(pattern)
        return [r for r in self.requests if r.method == method and regex.fullmatch(r.path)]

    def job_state(self, job_id: str) -> str:
        return self.jobs[job_id]["state"]

    # Transport interface

    async def request(self, request: BulkRequest) -> Any:
        self.requests.append(request)
        self._maybe_fail(request)

        if request.method == "POST" and request.path == "/job":
            return self._create_job(parse_xml(request.body)["jobInfo"])

        match = _JOB.match(request.path)
        if match:
            job = self._job(match["job"])
            if request.method == "POST":
                job["state"] = parse_xml(request.body)["jobInfo"]["state"]
            return {"jobInfo": dict(job)}

        match = _BATCHES.match(request.path)
        if match:
            job = self._job(match["job"])
            if request.method == "POST":
                return await self._create_batch(job, request.body)
            infos = [self._batch_info(b) for b in self.batches.values() if b["jobId"] == job["id"]]
            return {"batchInfoList": {"batchInfo": _one_or_many(infos)}}

        match = _BATCH.match(request.path)
        if match:
            batch = self._batch(match["batch"])
            step = batch["script"].pop(0) if len(batch["script"]) > 1 else batch["script"][0]
            batch.update(step)
            return {"batchInfo": self._batch_info(batch)}

        match = _RESULTS.match(request.path)
        if match:
            job = self._job(match["job"])
            batch = self._batch(match["batch"])
            if job["operation"] in ("query", "queryAll"):
                return {"result-list": {"result": _one_or_many(list(self.query_result_ids))}}
            if self.load_results is not None:
                return [dict(row) for row in self.load_results]
            rows = CsvCodec(null_value=None).parse(self.uploads[batch["id"]])
            return [{"Id": f"001{i:03d}", "Success": "true", "Created": "true", "Error": ""} for i, _ in enumerate(rows)]

        raise BulkApiError("InvalidUrl", f"Unknown path {request.path}", details={"status_code": 404})

    async def stream(self, request: BulkRequest) -> AsyncIterator[bytes]:
        self.requests.append(request)
        self._maybe_fail(request)
        match = _RESULT_PART.match(request.path)
        if not match or match["result"] not in self.result_parts:
            raise BulkApiError("InvalidBatch", f"Unknown result {request.path}")
        data = self.result_parts[match["result"]]
        for start in range(0, len(data), self.chunk_size):
            yield data[start:start + self.chunk_size]

    async def close(self) -> None:
        self.closed = True

    # Internals

    def _maybe_fail(self, request: BulkRequest) -> None:
        for method, pattern, error in self.failures:
            if method == request.method and pattern.fullmatch(request.path):
                raise error

    def _job(self, job_id: str) -> Dict[str, Any]:
        if job_id not in self.jobs:
            raise BulkApiError("InvalidJob", f"Unable to find job {job_id}")
        return self.jobs[job_id]

    def _batch(self, batch_id: str) -> Dict[str, Any]:
        if batch_id not in self.batches:
            raise BulkApiError("InvalidBatch", f"Unable to find batch {batch_id}")
        return self.batches[batch_id]

    def _create_job(self, info: Dict[str, Any]) -> Dict[str, Any]:
        job_id = f"750J{self._job_seq:04d}"
        self._job_seq += 1
        job = dict(info, id=job_id, state="Open", numberBatchesTotal="0")
        self.jobs[job_id] = job
        return {"jobInfo": dict(job)}

    async def _create_batch(self, job: Dict[str, Any], body: Any) -> Dict[str, Any]:
        if isinstance(body, str):
            data = body.encode("utf-8")
        elif isinstance(body, bytes):
            data = body
        else:
            data = b"".join([chunk async for chunk in body])

        batch_id = f"751B{self._batch_seq:04d}"
        self._batch_seq += 1
        self.uploads[batch_id] = data
        self.batches[batch_id] = {
            "id": batch_id,
            "jobId": job["id"],
            "state": "Queued",
            "script": [dict(step) for step in self.batch_script]
        }
        job["numberBatchesTotal"] = str(int(job["numberBatchesTotal"]) + 1)
        return {"batchInfo": self._batch_info(self.batches[batch_id])}

    def _batch_info(self, batch: Dict[str, Any]) -> Dict[str, Any]:
        return {key: value for key, value in batch.items() if key != "script"}


@pytest.fixture
def fake_transport():
    return FakeBulkTransport()


@pytest.fixture
def bulk(fake_transport):
    return BulkOrchestrator(fake_transport, poll_interval=0.01, poll_timeout=2.0)


@pytest.fixture
def transport_error():
    return TransportError("connection reset", status_code=None)
