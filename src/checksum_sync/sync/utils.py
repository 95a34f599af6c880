"""Types and utilities for file sync."""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from checksum_sync.services.transfer_service import TransferOutcome


class TaskState(str, Enum):
    """Lifecycle of a sync task.

    PENDING -> WALKING -> COMPARING_AND_TRANSFERRING -> COMPLETED, or FAILED
    when the source tree walk cannot start.
    """

    PENDING = "pending"
    WALKING = "walking"
    COMPARING_AND_TRANSFERRING = "comparing_and_transferring"
    COMPLETED = "completed"
    FAILED = "failed"


class FileOutcome(str, Enum):
    TRANSFERRED = "transferred"
    SKIPPED_UNCHANGED = "skipped_unchanged"
    FAILED = "failed"


@dataclass(frozen=True)
class FileEvent:
    """Completion event for one file."""

    relative_path: str
    outcome: FileOutcome
    digest: Optional[str] = None
    transfer: Optional[TransferOutcome] = None
    error: Optional[str] = None


@dataclass
class SyncCounters:
    """Per-task file counters.

    `processed` always equals transferred + skipped_unchanged + failed,
    since every outcome is recorded through `record`.
    """

    total_discovered: int = 0
    processed: int = 0
    transferred: int = 0
    skipped_unchanged: int = 0
    failed: int = 0

    def record(self, outcome: FileOutcome) -> None:
        if outcome == FileOutcome.TRANSFERRED:
            self.transferred += 1
        elif outcome == FileOutcome.SKIPPED_UNCHANGED:
            self.skipped_unchanged += 1
        else:
            self.failed += 1
        self.processed += 1

    def snapshot(self) -> "SyncCounters":
        return replace(self)

    @property
    def is_conserved(self) -> bool:
        return self.processed == self.transferred + self.skipped_unchanged + self.failed


@dataclass
class TaskReport:
    """Outcome of one sync task."""

    name: str
    table: str
    state: TaskState
    counters: SyncCounters = field(default_factory=SyncCounters)
    duration: float = 0.0
    cancelled: bool = False
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.state == TaskState.FAILED


class CancelToken:
    """
    Cooperative stop signal checked between files.

    Set explicitly with `cancel()` or implicitly once `deadline` seconds
    have passed since the token was created.
    """

    def __init__(self, deadline: Optional[float] = None):
        self._cancelled = False
        self._expires_at = time.monotonic() + deadline if deadline is not None else None

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        if self._cancelled:
            return True
        return self._expires_at is not None and time.monotonic() >= self._expires_at
