"""Utilities for matching exclude patterns during the source walk."""

import fnmatch
from pathlib import PurePosixPath
from typing import Iterable


def matches_pattern(
    relative_path: PurePosixPath, pattern: str, is_dir: bool, root_name: str = ""
) -> bool:
    """Check a single path against a single exclude pattern.

    Pattern rules, in the spirit of rsync's --exclude:
    - A trailing `/` only matches directories (`*/2023/`, `cache/`)
    - A leading `/` anchors the pattern at the source root (`/tmp`)
    - A pattern containing `/` matches the end of the path (`*/2023` matches
      `photos/2023` and `a/photos/2023`). The source root name counts as
      the first component, so `*/2023/` also matches a `2023` directory right
      under a root named `photos`
    - Any other pattern matches the entry name (`*.tmp`, `.git`)

    Args:
        relative_path: Path relative to the source root
        pattern: Exclude pattern
        is_dir: Whether the path is a directory
        root_name: Name of the source root directory

    Returns:
        True if the pattern excludes the path
    """
    if pattern.endswith("/"):
        if not is_dir:
            return False
        pattern = pattern.rstrip("/")
    if not pattern:
        return False

    relative_posix = relative_path.as_posix()

    if pattern.startswith("/"):
        return fnmatch.fnmatchcase(relative_posix, pattern.lstrip("/"))

    if "/" in pattern:
        parts = relative_path.parts
        if root_name:
            parts = (root_name, *parts)
        return any(
            fnmatch.fnmatchcase("/".join(parts[i:]), pattern) for i in range(len(parts))
        )

    return fnmatch.fnmatchcase(relative_path.name, pattern)


def should_exclude(
    relative_path: PurePosixPath, patterns: Iterable[str], is_dir: bool, root_name: str = ""
) -> bool:
    """Check if a path is excluded by any of the patterns."""
    return any(matches_pattern(relative_path, pattern, is_dir, root_name) for pattern in patterns)
