"""utility functions for commands"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import typer
from rich.console import Console
from rich.markup import escape

from checksum_sync import db
from checksum_sync.config import ConfigManager, SyncConfig
from checksum_sync.repository import FingerprintRepository
from checksum_sync.services.exceptions import ConfigError

console = Console()


def get_config(ctx: typer.Context) -> SyncConfig:
    """Load the config selected on the command line, exit on errors."""
    manager = ctx.obj if isinstance(ctx.obj, ConfigManager) else ConfigManager()
    try:
        return manager.config
    except ConfigError as e:
        console.print(f"[red]✗ {escape(str(e))}[/red]")
        raise typer.Exit(2)


@asynccontextmanager
async def open_store(config: SyncConfig) -> AsyncGenerator[FingerprintRepository, None]:
    """Open the fingerprint store for the lifetime of a command."""
    async with db.engine_session_factory(
        db_path=config.resolved_database_path, timeout=config.store_timeout
    ) as (engine, session_maker):
        yield FingerprintRepository(session_maker)
