"""CLI commands for checksum-sync."""

from . import status, sync

__all__ = ["status", "sync"]
