"""Source tree walk for sync tasks."""

import os
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Dict, List, Sequence

from loguru import logger

from checksum_sync.ignore_utils import should_exclude
from checksum_sync.services.exceptions import WalkError


@dataclass(frozen=True)
class FileWorkItem:
    """A regular file discovered under a source root."""

    absolute_path: Path
    relative_path: str


@dataclass
class ScanResult:
    """Result of walking a source tree."""

    files: List[FileWorkItem] = field(default_factory=list)
    # relative directory path -> error message
    errors: Dict[str, str] = field(default_factory=dict)
    excluded: int = 0


class SourceScanner:
    """
    Walks a source tree and lists the regular files to sync.

    Symlinks and special files are not followed or listed. Directories and
    files matching an exclude pattern are skipped; an excluded directory is
    not descended into.
    """

    def __init__(self, exclude_patterns: Sequence[str] = ()):
        self.exclude_patterns = tuple(exclude_patterns)

    def check_root(self, root: Path) -> None:
        """
        Make sure the walk can start.

        Raises:
            WalkError: If the root is missing, not a directory or unreadable
        """
        if not root.exists():
            raise WalkError(f"Source directory does not exist: {root}")
        if not root.is_dir():
            raise WalkError(f"Source path is not a directory: {root}")
        try:
            with os.scandir(root):
                pass
        except OSError as e:
            raise WalkError(f"Cannot read source directory {root}: {e}") from e

    def scan_directory(self, root: Path) -> ScanResult:
        """
        Walk `root` depth first in name order.

        Unreadable subdirectories are recorded in `errors` and skipped.

        Args:
            root: Source root

        Returns:
            ScanResult with the discovered files

        Raises:
            WalkError: If the walk cannot start
        """
        logger.debug(f"Scanning directory: {root}")
        self.check_root(root)
        root_name = root.absolute().name

        result = ScanResult()
        stack = [root]
        while stack:
            directory = stack.pop()
            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                if directory == root:
                    raise WalkError(f"Cannot read source directory {root}: {e}") from e
                rel_dir = directory.relative_to(root).as_posix()
                result.errors[rel_dir] = str(e)
                logger.warning(f"Skipping unreadable directory {rel_dir}: {e}")
                continue

            subdirs = []
            for entry in entries:
                path = Path(entry.path)
                rel_path = PurePosixPath(path.relative_to(root).as_posix())
                try:
                    is_dir = entry.is_dir(follow_symlinks=False)
                    is_file = entry.is_file(follow_symlinks=False)
                except OSError as e:
                    result.errors[rel_path.as_posix()] = str(e)
                    continue

                if is_dir:
                    if should_exclude(
                        rel_path, self.exclude_patterns, is_dir=True, root_name=root_name
                    ):
                        result.excluded += 1
                        continue
                    subdirs.append(path)
                elif is_file:
                    if should_exclude(
                        rel_path, self.exclude_patterns, is_dir=False, root_name=root_name
                    ):
                        result.excluded += 1
                        continue
                    result.files.append(FileWorkItem(path, rel_path.as_posix()))

            # reversed so the stack pops subdirectories in name order
            stack.extend(reversed(subdirs))

        logger.debug(f"Found {len(result.files)} files, {result.excluded} excluded")
        if result.errors:
            logger.warning(f"Encountered {len(result.errors)} errors while scanning")
        return result
