"""Status command for checksum-sync CLI."""

import asyncio
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

import typer
from rich.markup import escape
from rich.table import Table

from checksum_sync.cli.app import app
from checksum_sync.cli.commands.command_utils import console, get_config, open_store
from checksum_sync.config import SyncConfig
from checksum_sync.repository import FingerprintRepository
from checksum_sync.services.exceptions import StoreUnavailable


@dataclass
class TaskStatus:
    name: str
    table: str
    source_root: str
    dest_root: str
    records: int = 0
    last_synced: Optional[datetime] = None


async def collect_status(config: SyncConfig, store: FingerprintRepository) -> List[TaskStatus]:
    """Record count and last sync time of every configured task."""
    existing = set(await store.list_tables())
    statuses = []
    for task in config.tasks:
        status = TaskStatus(
            name=task.name,
            table=task.table,
            source_root=str(task.source_root),
            dest_root=str(task.dest_root),
        )
        if task.table in existing:
            status.records = await store.count(task.table)
            status.last_synced = await store.last_synced(task.table)
        statuses.append(status)
    return statuses


def display_status(statuses: List[TaskStatus]) -> None:
    if not statuses:
        console.print("[yellow]No sync tasks configured[/yellow]")
        return

    table = Table(title="Sync Tasks")
    table.add_column("Task", style="bold")
    table.add_column("Source")
    table.add_column("Destination")
    table.add_column("Table")
    table.add_column("Files", justify="right")
    table.add_column("Last synced")
    for status in statuses:
        last = status.last_synced.strftime("%Y-%m-%d %H:%M:%S UTC") if status.last_synced else "never"
        table.add_row(
            status.name,
            status.source_root,
            status.dest_root,
            status.table,
            str(status.records),
            last,
        )
    console.print(table)


async def run_status(config: SyncConfig) -> List[TaskStatus]:
    async with open_store(config) as store:
        return await collect_status(config, store)


@app.command()
def status(ctx: typer.Context) -> None:
    """Show configured tasks and what the fingerprint store knows about them."""
    config = get_config(ctx)
    try:
        statuses = asyncio.run(run_status(config))
    except StoreUnavailable as e:
        console.print(f"[red]✗ Error checking status: {escape(str(e))}[/red]")
        raise typer.Exit(1)
    display_status(statuses)
