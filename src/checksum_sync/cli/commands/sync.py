"""Command module for checksum-sync sync runs."""

import asyncio
import signal
from typing import List, Optional

import typer
from loguru import logger
from rich.markup import escape
from rich.table import Table

from checksum_sync.cli.app import app
from checksum_sync.cli.commands.command_utils import console, get_config, open_store
from checksum_sync.config import SyncConfig, SyncTaskSpec
from checksum_sync.metrics import create_sink
from checksum_sync.services.exceptions import ConfigError, StoreUnavailable
from checksum_sync.sync import CancelToken, RunReport, RunStatus, TaskRunner, TaskState
from checksum_sync.utils import format_duration, setup_logging


def select_tasks(
    config: SyncConfig, task_names: List[str], specs: List[str]
) -> List[SyncTaskSpec]:
    """Tasks named on the command line, inline task specs, or all configured tasks."""
    tasks = [config.get_task(name) for name in task_names]
    tasks.extend(SyncTaskSpec.parse(text) for text in specs)
    if not task_names and not specs:
        tasks = list(config.tasks)
    if not tasks:
        raise ConfigError("No sync tasks configured")
    return tasks


def display_run_summary(report: RunReport, dry_run: bool = False) -> None:
    """Display per-task counters as a table."""
    title = "Sync Results (dry run)" if dry_run else "Sync Results"
    table = Table(title=title)
    table.add_column("Task", style="bold")
    table.add_column("State")
    table.add_column("Discovered", justify="right")
    table.add_column("Synced", justify="right", style="green")
    table.add_column("Skipped", justify="right")
    table.add_column("Failed", justify="right")
    table.add_column("Duration", justify="right")

    for task in report.tasks:
        c = task.counters
        if task.state == TaskState.FAILED:
            state = "[red]failed[/red]"
        elif task.cancelled:
            state = "[yellow]cancelled[/yellow]"
        else:
            state = "[green]completed[/green]"
        failed = f"[red]{c.failed}[/red]" if c.failed else "0"
        table.add_row(
            task.name,
            state,
            str(c.total_discovered),
            str(c.transferred),
            str(c.skipped_unchanged),
            failed,
            format_duration(task.duration),
        )

    console.print(table)
    for task in report.tasks:
        if task.error:
            console.print(f"[red]✗ {task.name}: {escape(task.error)}[/red]")

    if report.status == RunStatus.SUCCESS:
        console.print(f"[green]✓ Run completed in {format_duration(report.duration)}[/green]")
    else:
        console.print(f"[red]✗ Failed tasks: {', '.join(report.failed_tasks)}[/red]")


async def run_sync(
    config: SyncConfig,
    tasks: List[SyncTaskSpec],
    dry_run: bool = False,
    deadline: Optional[float] = None,
) -> RunReport:
    """Run sync tasks until done, a stop signal or the deadline."""
    cancel_token = CancelToken(deadline)
    loop = asyncio.get_running_loop()

    def request_stop() -> None:
        logger.warning("Stop requested, finishing files in progress")
        cancel_token.cancel()

    installed = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, request_stop)
            installed.append(sig)
        except (NotImplementedError, RuntimeError):  # pragma: no cover
            pass

    sink = create_sink(config.pushgateway_url, timeout=config.metrics_timeout)
    try:
        async with open_store(config) as store:
            runner = TaskRunner(config, store, sink, cancel_token=cancel_token, dry_run=dry_run)
            return await runner.run(tasks)
    finally:
        await sink.aclose()
        for sig in installed:
            loop.remove_signal_handler(sig)


@app.command("run")
def run(
    ctx: typer.Context,
    task: List[str] = typer.Option([], "--task", "-t", help="Run only this configured task."),
    spec: List[str] = typer.Option(
        [], "--spec", "-s", help="Inline task as name=source|dest|table."
    ),
    workers: Optional[int] = typer.Option(
        None, "--workers", "-w", min=1, help="Files processed concurrently per task."
    ),
    parallel: Optional[bool] = typer.Option(
        None, "--parallel/--sequential", help="Run tasks concurrently."
    ),
    overwrite: Optional[bool] = typer.Option(
        None, "--overwrite/--no-overwrite", help="Replace destination files that differ."
    ),
    deadline: Optional[float] = typer.Option(
        None, "--deadline", min=0, help="Stop starting new files after this many seconds."
    ),
    dry_run: bool = typer.Option(
        False, "--dry-run", "-n", help="Compare only, copy nothing and record nothing."
    ),
) -> None:
    """Sync source trees to their destinations."""
    config = get_config(ctx)
    overrides = {
        key: value
        for key, value in (
            ("workers", workers),
            ("parallel_tasks", parallel),
            ("overwrite_existing", overwrite),
        )
        if value is not None
    }
    if overrides:
        config = config.model_copy(update=overrides)

    setup_logging(log_level=config.log_level)

    try:
        tasks = select_tasks(config, task, spec)
        report = asyncio.run(run_sync(config, tasks, dry_run=dry_run, deadline=deadline))
    except (ConfigError, StoreUnavailable) as e:
        logger.error(f"Sync failed: {e}")
        console.print(f"[red]✗ Sync failed: {escape(str(e))}[/red]")
        raise typer.Exit(2)

    display_run_summary(report, dry_run=dry_run)
    raise typer.Exit(report.exit_code)
