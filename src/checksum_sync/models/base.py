"""Base metadata for fingerprint tables."""

from sqlalchemy import MetaData


def create_metadata() -> MetaData:
    """Metadata holding the per-task fingerprint tables of one store."""
    return MetaData()
