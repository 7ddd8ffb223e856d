"""
Main CLI entry point for Bulk Job Orchestrator

Provides command-line access to bulk loads, bulk queries and job management.
"""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any, AsyncIterator, Dict, List

import aiofiles
import click

from ..core.exceptions import BulkOrchestratorError
from ..core.orchestrator import BulkOrchestrator
from ..models.job import BatchInfo, BulkOperation, BulkOptions, JobInfo
from ..models.result import summarize_load_results
from ..utils.config import BulkConfig
from ..utils.logger import setup_logger

UPLOAD_CHUNK_SIZE = 64 * 1024

LOAD_OPERATIONS = [op.value for op in BulkOperation if not op.is_query]


def _build_orchestrator(config: BulkConfig) -> BulkOrchestrator:
    return BulkOrchestrator.from_config(config)


@click.group()
@click.option('--config', '-c', type=click.Path(exists=True, dir_okay=False), help='Configuration file (YAML or JSON)')
@click.option('--instance-url', help='Instance URL of the remote service')
@click.option('--access-token', help='Session token')
@click.option('--api-version', help='Bulk API version')
@click.option('--log-level', '-l', help='Log level')
@click.option('--verbose', '-v', is_flag=True, help='Verbose output')
@click.pass_context
def cli(ctx, config, instance_url, access_token, api_version, log_level, verbose):
    """Bulk Job Orchestrator CLI"""

    ctx.ensure_object(dict)

    try:
        base = BulkConfig.from_file(config) if config else BulkConfig.from_env()
        settings = base.merged(
            instance_url=instance_url,
            access_token=access_token,
            api_version=api_version,
            log_level=log_level
        )
    except BulkOrchestratorError as e:
        click.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    ctx.obj['logger'] = setup_logger("bulk_job_orchestrator", level=settings.log_level, structured=not verbose)
    ctx.obj['config'] = settings
    ctx.obj['verbose'] = verbose


@cli.group()
@click.pass_context
def job(ctx):
    """Job management commands"""
    pass


async def _file_chunks(path: str) -> AsyncIterator[bytes]:
    async with aiofiles.open(path, 'rb') as f:
        while True:
            chunk = await f.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


async def _read_input(path: str):
    """JSON files hold a list of records; anything else is streamed as raw CSV."""
    if Path(path).suffix.lower() == '.json':
        async with aiofiles.open(path, 'r', encoding='utf-8') as f:
            records = json.loads(await f.read())
        if not isinstance(records, list):
            raise click.BadParameter("JSON input must be a list of records", param_hint='INPUT_FILE')
        return records
    return _file_chunks(path)


@cli.command('load')
@click.argument('object_type')
@click.argument('operation', type=click.Choice(LOAD_OPERATIONS, case_sensitive=False))
@click.argument('input_file', type=click.Path(exists=True, dir_okay=False))
@click.option('--ext-id-field', help='External id field for upsert')
@click.option('--concurrency-mode', type=click.Choice(['Serial', 'Parallel'], case_sensitive=False), help='Batch concurrency mode')
@click.option('--assignment-rule-id', help='Assignment rule id')
@click.option('--poll-interval', type=float, help='Seconds between status checks')
@click.option('--poll-timeout', type=float, help='Seconds before polling gives up')
@click.pass_context
def load_records(ctx, object_type, operation, input_file, ext_id_field, concurrency_mode,
                 assignment_rule_id, poll_interval, poll_timeout):
    """Load a CSV or JSON file into OBJECT_TYPE"""

    async def _load():
        orchestrator = None
        try:
            config = ctx.obj['config'].merged(poll_interval=poll_interval, poll_timeout=poll_timeout)
            orchestrator = _build_orchestrator(config)
            options = BulkOptions.from_dict({
                'ext_id_field': ext_id_field,
                'concurrency_mode': concurrency_mode,
                'assignment_rule_id': assignment_rule_id
            })
            source = await _read_input(input_file)
            results = await orchestrator.load(object_type, operation, options, source)
            _display_load_summary(summarize_load_results(results), ctx.obj['verbose'])

        except BulkOrchestratorError as e:
            click.echo(f"Error running load: {e}", err=True)
            sys.exit(1)
        finally:
            if orchestrator:
                await orchestrator.stop()

    asyncio.run(_load())


@cli.command('query')
@click.argument('soql')
@click.option('--output', '-o', type=click.Path(dir_okay=False, writable=True), help='Write records to this CSV file')
@click.pass_context
def query_records(ctx, soql, output):
    """Run a bulk query and print the records as CSV"""

    async def _query():
        orchestrator = None
        try:
            orchestrator = _build_orchestrator(ctx.obj['config'])
            encoder = orchestrator.codec.encoder()
            count = 0
            if output:
                async with aiofiles.open(output, 'wb') as f:
                    async for record in orchestrator.query(soql):
                        await f.write(encoder.encode(record))
                        count += 1
                click.echo(f"{count} records written to {output}")
            else:
                async for record in orchestrator.query(soql):
                    click.echo(encoder.encode(record).decode(orchestrator.codec.encoding), nl=False)
                    count += 1

        except BulkOrchestratorError as e:
            click.echo(f"Error running query: {e}", err=True)
            sys.exit(1)
        finally:
            if orchestrator:
                await orchestrator.stop()

    asyncio.run(_query())


def _run_job_command(ctx, job_id: str, action: str):
    async def _run():
        orchestrator = None
        try:
            orchestrator = _build_orchestrator(ctx.obj['config'])
            bulk_job = orchestrator.job(job_id)
            if action == 'status':
                _display_job_info(await bulk_job.check(), ctx.obj['verbose'])
            elif action == 'close':
                info = await bulk_job.close()
                click.echo(f"Job {info.id} closed")
            elif action == 'abort':
                info = await bulk_job.abort()
                click.echo(f"Job {info.id} aborted")
            elif action == 'batches':
                _display_batch_list(await bulk_job.list())

        except BulkOrchestratorError as e:
            click.echo(f"Error running job {action}: {e}", err=True)
            sys.exit(1)
        finally:
            if orchestrator:
                await orchestrator.stop()

    asyncio.run(_run())


@job.command('status')
@click.argument('job_id')
@click.pass_context
def job_status(ctx, job_id):
    """Show the state of a job"""
    _run_job_command(ctx, job_id, 'status')


@job.command('close')
@click.argument('job_id')
@click.pass_context
def close_job(ctx, job_id):
    """Close a job"""
    _run_job_command(ctx, job_id, 'close')


@job.command('abort')
@click.argument('job_id')
@click.pass_context
def abort_job(ctx, job_id):
    """Abort a job"""
    _run_job_command(ctx, job_id, 'abort')


@job.command('batches')
@click.argument('job_id')
@click.pass_context
def list_batches(ctx, job_id):
    """List the batches of a job"""
    _run_job_command(ctx, job_id, 'batches')


# Display helpers

def _display_load_summary(summary: Dict[str, Any], verbose: bool):
    """Display load outcome"""
    click.echo(f"Records: {summary['total']}")
    click.echo(f"  Succeeded: {summary['succeeded']}")
    click.echo(f"  Failed: {summary['failed']}")

    if summary['errors']:
        click.echo()
        click.echo("Errors:")
        shown = summary['errors'] if verbose else summary['errors'][:10]
        for entry in shown:
            click.echo(f"  {entry['id'] or '-'}: {'; '.join(entry['errors'])}")
        if len(shown) < len(summary['errors']):
            click.echo(f"  ... {len(summary['errors']) - len(shown)} more (use --verbose)")


def _display_job_info(info: JobInfo, verbose: bool):
    """Display job details"""
    click.echo(f"Job: {info.id}")
    click.echo(f"  Object: {info.object}")
    click.echo(f"  Operation: {info.operation.value if info.operation else 'N/A'}")
    click.echo(f"  State: {info.state.value}")
    click.echo(f"  Batches: {info.number_batches_completed}/{info.number_batches_total} completed")
    click.echo(f"  Records: {info.number_records_processed} processed, {info.number_records_failed} failed")

    if verbose:
        click.echo(json.dumps(info.to_dict(), indent=2))


def _display_batch_list(batches: List[BatchInfo]):
    """Display batch list table"""
    if not batches:
        click.echo("No batches found")
        return

    click.echo(f"{'Batch ID':<20} {'State':<14} {'Processed':>10} {'Failed':>8}  Message")
    click.echo("-" * 70)
    for info in batches:
        click.echo(
            f"{info.id:<20} {info.state.value:<14} {info.number_records_processed:>10} "
            f"{info.number_records_failed:>8}  {info.state_message or ''}"
        )


def main():
    """Main CLI entry point"""
    cli()


if __name__ == '__main__':
    main()
