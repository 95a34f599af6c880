"""Models package for checksum-sync."""

from checksum_sync.models.base import create_metadata
from checksum_sync.models.fingerprint import (
    FingerprintRecord,
    fingerprint_table,
    path_key,
    validate_table_name,
)

__all__ = [
    "FingerprintRecord",
    "create_metadata",
    "fingerprint_table",
    "path_key",
    "validate_table_name",
]
