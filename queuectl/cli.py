"""
Command line interface.

Thin layer over ``JobQueue``: every command opens the store, runs one queue
operation, prints the result, and closes the store.
"""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import TypeVar

import click

from queuectl.config import Settings, get_settings
from queuectl.constants import JobState
from queuectl.db import Database
from queuectl.errors import QueueError
from queuectl.observability.logging import setup_logging
from queuectl.queue import JobQueue
from queuectl.worker.supervisor import run_workers

T = TypeVar("T")


def parse_enqueue_input(args: tuple[str, ...]) -> str:
    """
    Build the command string from ``enqueue`` arguments.

    Arguments are joined with spaces. Input starting with ``{`` is read as a
    JSON object whose ``command`` field holds the command.
    """
    raw = " ".join(args).strip()
    if not raw.startswith("{"):
        return raw

    try:
        data = json.loads(raw)
    except json.JSONDecodeError as e:
        raise click.ClickException(f"Invalid JSON job: {e}")

    command = data.get("command") if isinstance(data, dict) else None
    if not isinstance(command, str) or not command.strip():
        raise click.ClickException("Field 'command' must be a non-empty string")
    return command


def run_with_queue(settings: Settings, action: Callable[[JobQueue], Awaitable[T]]) -> T:
    """Open the store, run one queue action, and close the store."""

    async def _run() -> T:
        database = Database.from_settings(settings)
        try:
            await database.create_schema()
            return await action(JobQueue(database, settings))
        finally:
            await database.close()

    try:
        return asyncio.run(_run())
    except QueueError as e:
        raise click.ClickException(str(e))


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    raise SystemExit(1)


@click.group(help="queuectl: persistent background job queue")
@click.option(
    "--database-url",
    default=None,
    help="SQLAlchemy async database URL (overrides DATABASE_URL).",
)
@click.pass_context
def cli(ctx: click.Context, database_url: str | None) -> None:
    settings = get_settings()
    if database_url:
        settings = settings.model_copy(update={"database_url": database_url})

    setup_logging(settings)
    ctx.obj = settings


# ---------- Enqueue ----------
@cli.command("enqueue", context_settings={"ignore_unknown_options": True})
@click.argument("args", nargs=-1, required=True, type=click.UNPROCESSED)
@click.pass_obj
def enqueue_cmd(settings: Settings, args: tuple[str, ...]) -> None:
    """Add a job, e.g. `queuectl enqueue echo hello`."""
    try:
        command = parse_enqueue_input(args)
        job = run_with_queue(settings, lambda queue: queue.enqueue(command))
    except click.ClickException as e:
        _fail(e.message)

    click.secho(f"Job enqueued: {job.id}", fg="green")
    click.echo(f"  command: {command}")
    click.echo(f"  max_retries: {job.max_retries}")


# ---------- Workers ----------
@cli.group("worker", help="Manage workers")
def worker_group() -> None:
    pass


@worker_group.command("start")
@click.option("--count", "-c", type=click.IntRange(min=1), default=1, show_default=True,
              help="Number of worker processes")
@click.pass_obj
def worker_start(settings: Settings, count: int) -> None:
    """Start worker processes. Press Ctrl+C to stop them gracefully."""
    click.secho(f"Starting {count} worker(s). Press Ctrl+C to stop.", fg="cyan")
    run_workers(count, settings)
    click.secho("Workers stopped.", fg="yellow")


# ---------- Jobs ----------
@cli.command("status")
@click.pass_obj
def status_cmd(settings: Settings) -> None:
    """Show the number of jobs in each state."""
    try:
        counts = run_with_queue(settings, lambda queue: queue.status_counts())
    except click.ClickException as e:
        _fail(e.message)

    if not any(counts.values()):
        click.echo("No jobs in the queue.")
        return

    for state, count in counts.items():
        click.echo(f"{state.value:<12}{count}")


@cli.command("list")
@click.option("--state", type=click.Choice([s.value for s in JobState]), default=None,
              help="Only show jobs in this state")
@click.pass_obj
def list_cmd(settings: Settings, state: str | None) -> None:
    """List jobs, oldest first."""
    job_state = JobState(state) if state else None
    try:
        jobs = run_with_queue(settings, lambda queue: queue.list_jobs(job_state))
    except click.ClickException as e:
        _fail(e.message)

    if not jobs:
        click.echo("No jobs.")
        return

    for job in jobs:
        click.echo(
            f"{job.id} | {job.state.value:<10} | attempts={job.attempts}/{job.max_retries} "
            f"| next={job.next_run_at.isoformat()} | cmd={job.command}"
        )


# ---------- DLQ ----------
@cli.group("dlq", help="Dead letter queue")
def dlq_group() -> None:
    pass


@dlq_group.command("list")
@click.pass_obj
def dlq_list_cmd(settings: Settings) -> None:
    """List dead jobs."""
    try:
        jobs = run_with_queue(settings, lambda queue: queue.list_dead())
    except click.ClickException as e:
        _fail(e.message)

    if not jobs:
        click.echo("DLQ is empty.")
        return

    for job in jobs:
        click.echo(
            f"{job.id} | attempts={job.attempts} | last_error={job.last_error} "
            f"| cmd={job.command}"
        )


@dlq_group.command("retry")
@click.argument("job_id")
@click.pass_obj
def dlq_retry_cmd(settings: Settings, job_id: str) -> None:
    """Move a dead job back to pending with a fresh retry budget."""
    try:
        job = run_with_queue(settings, lambda queue: queue.revive_from_dead(job_id))
    except click.ClickException as e:
        _fail(e.message)

    if job is None:
        _fail(f"Job {job_id} not found or not dead.")

    click.secho(f"Job {job.id} moved back to pending.", fg="green")


# ---------- Config ----------
@cli.group("config", help="Queue configuration")
def config_group() -> None:
    pass


@config_group.command("get")
@click.argument("key", required=False)
@click.pass_obj
def config_get(settings: Settings, key: str | None) -> None:
    """Show one config value, or all of them."""
    try:
        if key is None:
            click.echo(json.dumps(run_with_queue(settings, lambda queue: queue.list_config()), indent=2))
            return
        value = run_with_queue(settings, lambda queue: queue.get_config(key))
    except click.ClickException as e:
        _fail(e.message)

    if value is None:
        _fail(f'Config key "{key}" not found.')

    click.echo(f"{key} = {value}")


@config_group.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_obj
def config_set(settings: Settings, key: str, value: str) -> None:
    """Set a config value, e.g. `queuectl config set max_retries 5`."""
    try:
        run_with_queue(settings, lambda queue: queue.set_config(key, value))
    except click.ClickException as e:
        _fail(e.message)

    click.secho(f"Config updated: {key} = {value}", fg="green")


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
