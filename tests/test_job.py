"""Tests for the job lifecycle."""

import asyncio

import pytest

from bulk_job_orchestrator.core.exceptions import BulkApiError, ConfigurationError, JobNotOpenError
from bulk_job_orchestrator.models.job import BatchState, BulkOperation, JobState
from bulk_job_orchestrator.transport.http import parse_xml


async def _submit(job, records):
    batch = job.create_batch()
    queued = asyncio.get_running_loop().create_future()
    batch.queued.connect(queued.set_result)
    batch.execute(records)
    return await queued


class TestJobOpen:

    @pytest.mark.asyncio
    async def test_open_assigns_identity(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")
        opened = []
        job.opened.connect(opened.append)

        info = await job.open()

        assert job.id == info.id == "750J0000"
        assert job.state is JobState.OPEN
        assert [i.id for i in opened] == ["750J0000"]
        body = parse_xml(fake_transport.calls("POST", "/job")[0].body)["jobInfo"]
        assert body == {"operation": "insert", "object": "Account", "contentType": "CSV"}

    @pytest.mark.asyncio
    async def test_open_is_idempotent(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")

        first = job.open()
        second = job.open()
        await first

        assert first is second
        assert len(fake_transport.calls("POST", "/job")) == 1

    @pytest.mark.asyncio
    async def test_operation_is_normalized_and_options_sent(self, bulk, fake_transport):
        job = bulk.create_job("Contact", "UPSERT", {"extIdField": "Ext__c", "concurrencyMode": "serial"})

        await job.open()

        assert job.operation is BulkOperation.UPSERT
        body = parse_xml(fake_transport.calls("POST", "/job")[0].body)["jobInfo"]
        assert body["operation"] == "upsert"
        assert body["externalIdFieldName"] == "Ext__c"
        assert body["concurrencyMode"] == "Serial"

    @pytest.mark.asyncio
    async def test_hard_delete_spelling(self, bulk):
        assert bulk.create_job("Account", "HARDDELETE").operation is BulkOperation.HARD_DELETE
        assert bulk.create_job("Account", "queryall").operation is BulkOperation.QUERY_ALL

    @pytest.mark.asyncio
    async def test_unknown_operation_is_rejected(self, bulk):
        with pytest.raises(ConfigurationError):
            bulk.create_job("Account", "merge")

    @pytest.mark.asyncio
    async def test_open_without_type_fails_synchronously(self, bulk, fake_transport):
        job = bulk.job("750J9999")

        with pytest.raises(ConfigurationError):
            job.open()
        assert fake_transport.requests == []

    @pytest.mark.asyncio
    async def test_open_failure_is_broadcast_and_raised(self, bulk, fake_transport):
        fake_transport.fail("POST", "/job", BulkApiError("InvalidEntity", "No such object"))
        job = bulk.create_job("Nope", "insert")
        failures = []
        job.failed.connect(failures.append)

        with pytest.raises(BulkApiError) as exc_info:
            await job.open()

        assert exc_info.value.error_code == "InvalidEntity"
        assert failures == [exc_info.value]
        assert job.id is None
        assert job.open_failed


class TestJobInfo:

    @pytest.mark.asyncio
    async def test_check_opens_job_first(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")

        info = await job.check()

        assert info.id == job.id
        assert info.object == "Account"
        assert len(fake_transport.calls("POST", "/job")) == 1
        assert len(fake_transport.calls("GET", r"/job/[^/]+")) == 1

    @pytest.mark.asyncio
    async def test_info_is_cached(self, bulk, fake_transport):
        await bulk.create_job("Account", "update").open()
        job = bulk.job("750J0000")

        first = await job.info()
        second = await job.info()

        assert first is second
        assert job.operation is BulkOperation.UPDATE
        assert job.object_type == "Account"
        assert len(fake_transport.calls("GET", r"/job/[^/]+")) == 1

    @pytest.mark.asyncio
    async def test_info_after_open_uses_open_result(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")
        opened = await job.open()

        assert await job.info() is opened
        assert fake_transport.calls("GET", r"/job/[^/]+") == []


class TestJobStateChanges:

    @pytest.mark.asyncio
    async def test_close(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")
        await job.open()
        job_id = job.id
        closed = []
        job.closed.connect(closed.append)

        info = await job.close()

        assert info.state is JobState.CLOSED
        assert job.state is JobState.CLOSED
        assert job.id is None
        assert [i.id for i in closed] == [job_id]
        assert fake_transport.job_state(job_id) == "Closed"

    @pytest.mark.asyncio
    async def test_abort(self, bulk, fake_transport):
        await bulk.create_job("Account", "insert").open()
        job = bulk.job("750J0000")
        aborted = []
        job.aborted.connect(aborted.append)

        await job.abort()

        assert job.state is JobState.ABORTED
        assert len(aborted) == 1
        assert fake_transport.job_state("750J0000") == "Aborted"

    @pytest.mark.asyncio
    async def test_close_failure_is_broadcast_and_raised(self, bulk, fake_transport):
        job = bulk.create_job("Account", "insert")
        await job.open()
        fake_transport.fail("POST", r"/job/[^/]+", BulkApiError("InvalidJobState", "Job is already closed"))
        failures = []
        job.failed.connect(failures.append)

        with pytest.raises(BulkApiError):
            await job.close()

        assert len(failures) == 1
        assert job.id == "750J0000"

    @pytest.mark.asyncio
    async def test_closed_job_has_no_identity(self, bulk):
        job = bulk.create_job("Account", "insert")
        await job.open()
        await job.close()

        with pytest.raises(JobNotOpenError):
            await job.check()


class TestJobBatches:

    @pytest.mark.asyncio
    async def test_list_normalizes_single_and_many(self, bulk):
        job = bulk.create_job("Account", "insert")
        assert await job.list() == []

        await _submit(job, [{"Name": "A"}])
        single = await job.list()
        assert [b.id for b in single] == ["751B0000"]

        await _submit(job, [{"Name": "B"}])
        many = await job.list()
        assert [b.id for b in many] == ["751B0000", "751B0001"]
        assert all(b.state is BatchState.QUEUED for b in many)

    @pytest.mark.asyncio
    async def test_batch_registry(self, bulk):
        job = bulk.job("750J0000")

        assert job.batch("751B0001") is job.batch("751B0001")
        assert job.batch("751B0001").id == "751B0001"
        assert "751B0001" in job.batches
