"""Utilities for file operations."""

import hashlib
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from loguru import logger

# Read/write in 1 MiB chunks so large files never have to fit in memory
CHUNK_SIZE = 1024 * 1024


class FileError(Exception):
    """Base exception for file operations."""

    pass


class FileReadError(FileError):
    """Raised when a file cannot be read to completion."""

    pass


class FileWriteError(FileError):
    """Raised when file operations fail."""

    pass


def new_digest(algorithm: str):
    """Create a hashlib digest object for `algorithm`.

    Raises:
        FileError: If the algorithm is not available
    """
    try:
        return hashlib.new(algorithm, usedforsecurity=False)
    except (ValueError, TypeError) as e:
        raise FileError(f"Unsupported checksum algorithm: {algorithm}") from e


def compute_checksum(path: Path, algorithm: str = "md5", chunk_size: int = CHUNK_SIZE) -> str:
    """
    Compute the checksum of a file's full content.

    The number of bytes hashed must match the size of the file when it was
    opened. A file that shrinks or grows while being read is reported as an
    error instead of returning a digest of partial content.

    Args:
        path: File to hash
        algorithm: Any hashlib algorithm name
        chunk_size: Read size

    Returns:
        Hex digest

    Raises:
        FileReadError: If the file cannot be read to completion
    """
    digest = new_digest(algorithm)
    try:
        with path.open("rb") as f:
            expected = os.fstat(f.fileno()).st_size
            total = 0
            while chunk := f.read(chunk_size):
                digest.update(chunk)
                total += len(chunk)
    except OSError as e:
        raise FileReadError(f"Failed to read {path}: {e}") from e

    if total != expected:
        raise FileReadError(f"Short read on {path}: read {total} of {expected} bytes")
    return digest.hexdigest()


def ensure_directory(path: Path) -> None:
    """
    Ensure directory exists, creating if necessary.

    Args:
        path: Directory path to ensure

    Raises:
        FileWriteError: If directory creation fails
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Failed to create directory: {path}: {e}")
        raise FileWriteError(f"Failed to create directory {path}: {e}") from e


def files_identical(first: Path, second: Path, chunk_size: int = CHUNK_SIZE) -> bool:
    """Compare two files byte for byte.

    Raises:
        FileReadError: If either file cannot be read
    """
    try:
        if first.stat().st_size != second.stat().st_size:
            return False
        with first.open("rb") as a, second.open("rb") as b:
            while True:
                chunk_a = a.read(chunk_size)
                chunk_b = b.read(chunk_size)
                if chunk_a != chunk_b:
                    return False
                if not chunk_a:
                    return True
    except OSError as e:
        raise FileReadError(f"Failed to compare {first} with {second}: {e}") from e


def write_chunks(src: BinaryIO, dst: BinaryIO, chunk_size: int = CHUNK_SIZE) -> int:
    """Copy `src` to `dst` and return the number of bytes written."""
    written = 0
    while chunk := src.read(chunk_size):
        dst.write(chunk)
        written += len(chunk)
    return written


def copy_file_atomic(
    source: Path, dest: Path, preserve_attributes: bool = True, chunk_size: int = CHUNK_SIZE
) -> int:
    """
    Copy a file using a temporary sibling file and an atomic rename.

    The destination path either keeps its previous state or holds the complete
    new content. A failed or short copy removes the temporary file.

    Args:
        source: File to copy
        dest: Target file path, parent directories are created
        preserve_attributes: Copy modification time and permission bits
        chunk_size: Copy buffer size

    Returns:
        Number of bytes copied

    Raises:
        FileReadError: If the source cannot be opened
        FileWriteError: If the destination cannot be written completely
    """
    ensure_directory(dest.parent)

    try:
        src = source.open("rb")
    except OSError as e:
        raise FileReadError(f"Failed to open source {source}: {e}") from e

    with src:
        expected = os.fstat(src.fileno()).st_size
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{dest.name}.", suffix=".tmp", dir=dest.parent
            )
        except OSError as e:
            raise FileWriteError(f"Failed to create temporary file for {dest}: {e}") from e

        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as dst:
                written = write_chunks(src, dst, chunk_size)
                dst.flush()
                os.fsync(dst.fileno())

            if written != expected:
                raise FileWriteError(f"Short write to {dest}: wrote {written} of {expected} bytes")

            if preserve_attributes:
                shutil.copystat(source, temp_path)
            else:
                os.chmod(temp_path, 0o644)

            os.replace(temp_path, dest)
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            logger.debug(f"Removed temporary file after failed copy: {temp_path}")
            raise FileWriteError(f"Failed to write {dest}: {e}") from e
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

    return written
