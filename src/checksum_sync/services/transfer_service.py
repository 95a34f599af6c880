"""Service for copying files from a source tree into a destination tree."""

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from loguru import logger

from checksum_sync import file_utils
from checksum_sync.services.exceptions import TransferError


class TransferOutcome(str, Enum):
    """What a successful transfer did to the destination."""

    COPIED = "copied"
    IDENTICAL = "identical"
    KEPT_EXISTING = "kept_existing"


@dataclass(frozen=True)
class TransferOptions:
    overwrite_existing: bool = False
    preserve_attributes: bool = True


class TransferService:
    """
    Copies single files to a destination path.

    Features:
    - Temporary file plus atomic rename, so no truncated destination files
    - Byte count verification of every copy
    - Existing destinations are never clobbered unless overwrite is requested
    - Re-running a transfer onto an identical destination is a no-op
    """

    def __init__(self, chunk_size: int = file_utils.CHUNK_SIZE):
        self.chunk_size = chunk_size

    async def transfer(
        self, source: Path, dest: Path, options: TransferOptions = TransferOptions()
    ) -> TransferOutcome:
        """
        Transfer `source` to `dest`.

        Args:
            source: Source file
            dest: Destination file path
            options: Overwrite and attribute preservation settings

        Returns:
            TransferOutcome describing what happened at the destination

        Raises:
            TransferError: If the destination could not be written or the source vanished
        """
        return await asyncio.to_thread(self._transfer, source, dest, options)

    def _transfer(self, source: Path, dest: Path, options: TransferOptions) -> TransferOutcome:
        try:
            dest_exists = dest.exists()
            if dest.is_dir():
                raise TransferError(f"Destination is a directory: {dest}")
        except OSError as e:
            raise TransferError(f"Cannot inspect destination {dest}: {e}") from e

        if dest_exists:
            try:
                identical = file_utils.files_identical(source, dest, self.chunk_size)
            except file_utils.FileError as e:
                raise TransferError(str(e)) from e

            if identical:
                logger.debug(f"Destination already identical: {dest}")
                return TransferOutcome.IDENTICAL
            if not options.overwrite_existing:
                logger.debug(f"Destination exists, not overwriting: {dest}")
                return TransferOutcome.KEPT_EXISTING

        try:
            copied = file_utils.copy_file_atomic(
                source, dest, options.preserve_attributes, self.chunk_size
            )
        except file_utils.FileReadError as e:
            raise TransferError(f"Source unavailable: {e}") from e
        except file_utils.FileError as e:
            raise TransferError(str(e)) from e

        logger.debug(f"copied {source} -> {dest} ({copied} bytes)")
        return TransferOutcome.COPIED
