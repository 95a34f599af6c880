"""Service for computing file content fingerprints."""

import asyncio
from pathlib import Path

from loguru import logger

from checksum_sync import file_utils
from checksum_sync.services.exceptions import ConfigError, ReadError


class FingerprintService:
    """
    Computes content fingerprints used to detect changed files.

    Fingerprints are hex digests of the full file content. The digest is for
    change detection only, so fast non-cryptographic-strength algorithms such
    as md5 are fine.
    """

    def __init__(self, algorithm: str = "md5", chunk_size: int = file_utils.CHUNK_SIZE):
        try:
            file_utils.new_digest(algorithm)
        except file_utils.FileError as e:
            raise ConfigError(str(e)) from e
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    async def fingerprint(self, path: Path) -> str:
        """
        Fingerprint a file.

        Args:
            path: File to read

        Returns:
            Hex digest of the file content

        Raises:
            ReadError: If the file cannot be opened or read to completion
        """
        try:
            digest = await asyncio.to_thread(
                file_utils.compute_checksum, path, self.algorithm, self.chunk_size
            )
        except file_utils.FileError as e:
            raise ReadError(str(e)) from e

        logger.debug(f"fingerprint: {path} {digest[:8]}")
        return digest
