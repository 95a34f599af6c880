"""Tests for file utilities."""

import errno
import hashlib
import os
from pathlib import Path

import pytest

from checksum_sync import file_utils
from checksum_sync.file_utils import (
    FileError,
    FileReadError,
    FileWriteError,
    compute_checksum,
    copy_file_atomic,
    ensure_directory,
    files_identical,
)


def test_compute_checksum(tmp_path: Path):
    """Test checksum computation."""
    path = tmp_path / "a.txt"
    path.write_bytes(b"hello world")

    checksum = compute_checksum(path)
    assert checksum == hashlib.md5(b"hello world").hexdigest()
    assert len(checksum) == 32


def test_compute_checksum_other_algorithm(tmp_path: Path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"hello world")

    assert compute_checksum(path, "sha256") == hashlib.sha256(b"hello world").hexdigest()


def test_compute_checksum_small_chunks(tmp_path: Path):
    """Chunked reads hash the full content."""
    content = os.urandom(10_000)
    path = tmp_path / "big.bin"
    path.write_bytes(content)

    assert compute_checksum(path, chunk_size=7) == hashlib.md5(content).hexdigest()


def test_compute_checksum_empty_file(tmp_path: Path):
    path = tmp_path / "empty"
    path.write_bytes(b"")

    assert compute_checksum(path) == hashlib.md5(b"").hexdigest()


def test_compute_checksum_missing_file(tmp_path: Path):
    with pytest.raises(FileReadError):
        compute_checksum(tmp_path / "missing.txt")


def test_compute_checksum_unknown_algorithm(tmp_path: Path):
    path = tmp_path / "a.txt"
    path.write_bytes(b"x")

    with pytest.raises(FileError):
        compute_checksum(path, "not-a-hash")


def test_compute_checksum_short_read(tmp_path: Path, monkeypatch):
    """A file that yields fewer bytes than its size is an error, not a digest."""
    path = tmp_path / "a.txt"
    path.write_bytes(b"0123456789")

    real_fstat = os.fstat

    class GrownStat:
        def __init__(self, result):
            self.st_size = result.st_size + 5

    monkeypatch.setattr(file_utils.os, "fstat", lambda fd: GrownStat(real_fstat(fd)))

    with pytest.raises(FileReadError, match="Short read"):
        compute_checksum(path)


def test_ensure_directory(tmp_path: Path):
    """Test directory creation."""
    test_dir = tmp_path / "a" / "b"
    ensure_directory(test_dir)
    assert test_dir.is_dir()

    # Idempotent
    ensure_directory(test_dir)


def test_ensure_directory_error(tmp_path: Path):
    blocker = tmp_path / "file"
    blocker.write_text("not a dir")

    with pytest.raises(FileWriteError):
        ensure_directory(blocker / "child")


def test_files_identical(tmp_path: Path):
    a = tmp_path / "a"
    b = tmp_path / "b"
    c = tmp_path / "c"
    d = tmp_path / "d"
    a.write_bytes(b"same content")
    b.write_bytes(b"same content")
    c.write_bytes(b"same contenT")
    d.write_bytes(b"shorter")

    assert files_identical(a, b, chunk_size=4)
    assert not files_identical(a, c, chunk_size=4)
    assert not files_identical(a, d)


def test_files_identical_missing(tmp_path: Path):
    a = tmp_path / "a"
    a.write_bytes(b"x")

    with pytest.raises(FileReadError):
        files_identical(a, tmp_path / "missing")


def test_copy_file_atomic(tmp_path: Path):
    """Test atomic copy into a new directory."""
    source = tmp_path / "src.bin"
    content = os.urandom(5000)
    source.write_bytes(content)
    dest = tmp_path / "out" / "nested" / "dst.bin"

    copied = copy_file_atomic(source, dest, chunk_size=1024)

    assert copied == len(content)
    assert dest.read_bytes() == content
    # Temp file should be cleaned up
    assert [p.name for p in dest.parent.iterdir()] == ["dst.bin"]


def test_copy_file_atomic_preserves_mtime(tmp_path: Path):
    source = tmp_path / "src.txt"
    source.write_text("content")
    os.utime(source, (1_600_000_000, 1_600_000_000))
    dest = tmp_path / "dst.txt"

    copy_file_atomic(source, dest)

    assert int(dest.stat().st_mtime) == 1_600_000_000


def test_copy_file_atomic_replaces_existing(tmp_path: Path):
    source = tmp_path / "src.txt"
    source.write_text("new")
    dest = tmp_path / "dst.txt"
    dest.write_text("old content")

    copy_file_atomic(source, dest)

    assert dest.read_text() == "new"


def test_copy_file_atomic_missing_source(tmp_path: Path):
    dest = tmp_path / "dst.txt"

    with pytest.raises(FileReadError):
        copy_file_atomic(tmp_path / "missing.txt", dest)

    assert not dest.exists()


def test_copy_file_atomic_disk_full(tmp_path: Path, monkeypatch):
    """A failing write leaves neither a partial destination nor a temp file."""
    source = tmp_path / "src.txt"
    source.write_text("content")
    out = tmp_path / "out"
    dest = out / "dst.txt"

    def fail_write(src, dst, chunk_size=file_utils.CHUNK_SIZE):
        dst.write(b"partial")
        raise OSError(errno.ENOSPC, "No space left on device")

    monkeypatch.setattr(file_utils, "write_chunks", fail_write)

    with pytest.raises(FileWriteError, match="No space left"):
        copy_file_atomic(source, dest)

    assert not dest.exists()
    assert list(out.iterdir()) == []


def test_copy_file_atomic_short_write(tmp_path: Path, monkeypatch):
    """A copy that writes fewer bytes than the source holds is rejected."""
    source = tmp_path / "src.txt"
    source.write_text("content")
    dest = tmp_path / "out" / "dst.txt"
    dest.parent.mkdir()
    dest.write_text("previous")

    monkeypatch.setattr(file_utils, "write_chunks", lambda src, dst, chunk_size: 3)

    with pytest.raises(FileWriteError, match="Short write"):
        copy_file_atomic(source, dest)

    # The previous destination is untouched
    assert dest.read_text() == "previous"
    assert [p.name for p in dest.parent.iterdir()] == ["dst.txt"]
