"""Main CLI entry point for checksum-sync."""  # pragma: no cover

from checksum_sync.cli.app import app  # pragma: no cover

# Register commands
from checksum_sync.cli.commands import status, sync  # pragma: no cover

__all__ = ["app", "status", "sync"]  # pragma: no cover

if __name__ == "__main__":  # pragma: no cover
    app()
