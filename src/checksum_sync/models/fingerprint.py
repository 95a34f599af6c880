"""Fingerprint table definitions."""

import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, MetaData, Table, Text

# Table names are interpolated into DDL, only plain identifiers are accepted
TABLE_NAME_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def validate_table_name(name: str) -> str:
    """Return `name` if it is a valid fingerprint table name.

    Raises:
        ValueError: If the name is not a plain SQL identifier
    """
    if not TABLE_NAME_PATTERN.match(name):
        raise ValueError(
            f"Invalid table name {name!r}: use letters, digits and underscores, "
            "not starting with a digit"
        )
    return name


def path_key(relative_path: str) -> str:
    """Store key for a relative path.

    Names that are not valid UTF-8 arrive with surrogate escapes, which SQLite
    cannot bind. Their raw bytes are kept as backslash escapes instead, valid
    names are returned unchanged.
    """
    return os.fsencode(relative_path).decode("utf-8", "backslashreplace")


def fingerprint_table(name: str, metadata: MetaData) -> Table:
    """
    Get the fingerprint table for a sync task.

    Each sync task owns one table, keyed by the file path relative to the
    task's source root:

        file_path    TEXT PRIMARY KEY
        digest       TEXT NOT NULL
        last_synced  DATETIME NOT NULL (UTC)
    """
    validate_table_name(name)
    if name in metadata.tables:
        return metadata.tables[name]
    return Table(
        name,
        metadata,
        Column("file_path", Text, primary_key=True),
        Column("digest", Text, nullable=False),
        Column("last_synced", DateTime, nullable=False),
    )


@dataclass(frozen=True)
class FingerprintRecord:
    """Last known fingerprint of one file."""

    relative_path: str
    fingerprint: str
    last_synced: datetime

    @classmethod
    def from_row(cls, row) -> "FingerprintRecord":
        last_synced = row.last_synced
        if last_synced.tzinfo is None:
            last_synced = last_synced.replace(tzinfo=timezone.utc)
        return cls(relative_path=row.file_path, fingerprint=row.digest, last_synced=last_synced)
