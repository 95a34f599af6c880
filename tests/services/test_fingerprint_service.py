"""Tests for FingerprintService."""

import hashlib
from pathlib import Path

import pytest

from checksum_sync.services import FingerprintService
from checksum_sync.services.exceptions import ConfigError, ReadError


@pytest.mark.asyncio
async def test_fingerprint(tmp_path: Path, fingerprinter: FingerprintService):
    path = tmp_path / "a.txt"
    path.write_bytes(b"content")

    assert await fingerprinter.fingerprint(path) == hashlib.md5(b"content").hexdigest()


@pytest.mark.asyncio
async def test_fingerprint_changes_with_content(tmp_path: Path, fingerprinter: FingerprintService):
    path = tmp_path / "a.txt"
    path.write_bytes(b"one")
    first = await fingerprinter.fingerprint(path)
    path.write_bytes(b"two")

    assert await fingerprinter.fingerprint(path) != first


@pytest.mark.asyncio
async def test_fingerprint_sha256(tmp_path: Path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"content")

    service = FingerprintService("sha256", chunk_size=3)

    assert await service.fingerprint(path) == hashlib.sha256(b"content").hexdigest()


@pytest.mark.asyncio
async def test_fingerprint_missing_file(tmp_path: Path, fingerprinter: FingerprintService):
    with pytest.raises(ReadError):
        await fingerprinter.fingerprint(tmp_path / "missing.txt")


def test_invalid_algorithm():
    with pytest.raises(ConfigError):
        FingerprintService("not-a-hash")
