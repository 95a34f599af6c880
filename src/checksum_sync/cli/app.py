from pathlib import Path
from typing import Optional

import typer

from checksum_sync.config import ConfigManager


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:  # pragma: no cover
        import checksum_sync

        typer.echo(f"checksum-sync version: {checksum_sync.__version__}")
        raise typer.Exit()


app = typer.Typer(name="checksum-sync", no_args_is_help=True)


@app.callback()
def app_callback(
    ctx: typer.Context,
    config_file: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to the JSON config file.",
        envvar="CHECKSUM_SYNC_CONFIG",
    ),
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
) -> None:
    """checksum-sync - incremental, checksum-verified directory sync."""
    ctx.obj = ConfigManager(config_file)
