"""
Basic usage example for Bulk Job Orchestrator

This example loads a few accounts, streams a query back and drives a job
by hand. Connection settings come from BULK_INSTANCE_URL / BULK_ACCESS_TOKEN.
"""

import asyncio

from bulk_job_orchestrator import (
    BulkConfig,
    BulkOrchestrator,
    BulkOrchestratorError,
    summarize_load_results
)


async def load_example(bulk: BulkOrchestrator):
    """One-call load: the job is opened, polled and closed for you."""
    print("🚀 Loading accounts")

    results = await bulk.load("Account", "insert", [
        {"Name": "Acme", "Phone": "555-0100"},
        {"Name": "Globex", "Phone": None},  # written as #N/A, clears the field
    ])

    summary = summarize_load_results(results)
    print(f"✅ {summary['succeeded']} created, {summary['failed']} failed")
    for result in results:
        print(f"   {result.id or '-'}: {'ok' if result.success else '; '.join(result.errors)}")


async def query_example(bulk: BulkOrchestrator):
    """Bulk query: every result part is merged into one record stream."""
    print("\n🔎 Querying accounts")

    count = 0
    async for record in bulk.query("SELECT Id, Name FROM Account WHERE CreatedDate = TODAY"):
        count += 1
        if count <= 5:
            print(f"   {record['Id']}: {record['Name']}")
    print(f"📊 {count} records")


async def manual_job_example(bulk: BulkOrchestrator):
    """Drive a job and its batches explicitly."""
    print("\n🔧 Manual job handling")

    job = bulk.create_job("Contact", "upsert", {"extIdField": "Legacy_Id__c"})
    batch = job.create_batch()
    batch.queued.connect(lambda info: print(f"   batch {info.id} queued"))
    batch.progress.connect(lambda info: print(f"   batch {info.id}: {info.state.value}"))
    batch.queued.connect(lambda info: batch.poll(bulk.poll_interval, 60))

    stream = batch.stream()
    for i in range(3):
        await stream.write({"Legacy_Id__c": f"L-{i}", "LastName": f"Example {i}"})
    await stream.end()

    async for result in stream:
        print(f"   {result.id}: {'ok' if result.success else result.errors}")

    info = await job.close()
    print(f"🛑 Job {info.id} {info.state.value}")


async def main():
    config = BulkConfig.from_env()
    try:
        async with BulkOrchestrator.from_config(config) as bulk:
            await load_example(bulk)
            await query_example(bulk)
            await manual_job_example(bulk)
    except BulkOrchestratorError as e:
        print(f"❌ {e.error_code}: {e}")


if __name__ == "__main__":
    asyncio.run(main())
