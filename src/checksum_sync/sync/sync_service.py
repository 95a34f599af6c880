"""Checksum-tracked incremental sync of one source tree."""

import asyncio
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from checksum_sync.config import SyncTaskSpec
from checksum_sync.models import path_key
from checksum_sync.repository import FingerprintRepository
from checksum_sync.services import (
    FingerprintService,
    TransferOptions,
    TransferOutcome,
    TransferService,
)
from checksum_sync.services.exceptions import ReadError, StoreUnavailable, TransferError, WalkError
from checksum_sync.sync.scanner import FileWorkItem, SourceScanner
from checksum_sync.sync.utils import (
    CancelToken,
    FileEvent,
    FileOutcome,
    SyncCounters,
    TaskReport,
    TaskState,
)
from checksum_sync.utils import TaskLogger, format_duration

FileListener = Callable[[FileEvent], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SyncTask:
    """
    Syncs one source tree into a destination tree.

    For every file under the source root the content fingerprint is compared
    with the one stored for its relative path. Unchanged files are skipped,
    everything else is transferred and its fingerprint recorded. Per-file
    errors are logged and counted; only a walk that cannot start fails the
    task.
    """

    def __init__(
        self,
        spec: SyncTaskSpec,
        store: FingerprintRepository,
        fingerprinter: FingerprintService,
        transferor: TransferService,
        log: TaskLogger,
        *,
        workers: int = 1,
        exclude_patterns: Sequence[str] = (),
        overwrite_existing: bool = False,
        dry_run: bool = False,
        cancel_token: Optional[CancelToken] = None,
        listener: Optional[FileListener] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.spec = spec
        self.store = store
        self.fingerprinter = fingerprinter
        self.transferor = transferor
        self.log = log
        self.workers = max(1, workers)
        self.scanner = SourceScanner(exclude_patterns)
        self.transfer_options = TransferOptions(
            overwrite_existing=overwrite_existing, preserve_attributes=True
        )
        self.dry_run = dry_run
        self.cancel_token = cancel_token or CancelToken()
        self.listener = listener
        self.clock = clock

        self.state = TaskState.PENDING
        self.counters = SyncCounters()
        self.cancelled = False
        self._started = 0

    @property
    def table(self) -> str:
        return self.spec.table

    def dest_path(self, relative_path: str) -> Path:
        return Path(self.spec.dest_root, *relative_path.split("/"))

    async def run(self) -> TaskReport:
        """Run the task to completion and return its report."""
        start = time.monotonic()
        source_root = self.spec.source_root
        self.log.info(f"Starting sync process for directory: {source_root}")
        if self.dry_run:
            self.log.info("Dry run: no files will be copied and no checksums recorded")

        self.state = TaskState.WALKING
        try:
            scan = await asyncio.to_thread(self.scanner.scan_directory, source_root)
        except WalkError as e:
            self.state = TaskState.FAILED
            duration = time.monotonic() - start
            self.log.error(f"Sync task {self.spec.name} failed: {e}")
            return TaskReport(
                name=self.spec.name,
                table=self.table,
                state=self.state,
                counters=self.counters.snapshot(),
                duration=duration,
                error=str(e),
            )

        for rel_dir, error in scan.errors.items():
            self.log.error(f"Skipped unreadable path {rel_dir}: {error}")

        self.counters.total_discovered = len(scan.files)
        self.log.info(f"Found {len(scan.files)} files ({scan.excluded} excluded)")

        if not self.dry_run:
            try:
                await self.store.ensure_table(self.table)
            except StoreUnavailable as e:
                self.log.error(f"Fingerprint store degraded, all files will be transferred: {e}")

        self.state = TaskState.COMPARING_AND_TRANSFERRING
        await self.process_files(scan.files)
        self.state = TaskState.COMPLETED

        duration = time.monotonic() - start
        c = self.counters
        self.log.info("Sync process completed", duration=format_duration(duration))
        self.log.info(
            f"Summary: Processed: {c.processed}, Synced: {c.transferred}, "
            f"Skipped: {c.skipped_unchanged}, Failed: {c.failed}"
        )
        return TaskReport(
            name=self.spec.name,
            table=self.table,
            state=self.state,
            counters=c.snapshot(),
            duration=duration,
            cancelled=self.cancelled,
        )

    async def process_files(self, items: List[FileWorkItem]) -> None:
        """Process files with a bounded pool of workers."""
        pending = iter(items)
        total = len(items)

        async def worker() -> None:
            for item in pending:
                if self.cancel_token.cancelled:
                    if not self.cancelled:
                        self.cancelled = True
                        self.log.info(
                            f"Sync cancelled after {self.counters.processed}/{total} files"
                        )
                    return
                self._started += 1
                self.log.info(
                    f"Processing file {self._started}/{total}: {path_key(item.relative_path)}"
                )
                event = await self.sync_file(item)
                self.counters.record(event.outcome)
                if self.listener:
                    self.listener(event)

        await asyncio.gather(*(worker() for _ in range(min(self.workers, total) or 1)))

    async def sync_file(self, item: FileWorkItem) -> FileEvent:
        """
        Compare one file with its stored fingerprint and transfer it if needed.

        Never raises for per-file problems; the returned event carries the
        outcome.
        """
        rel_path = item.relative_path
        try:
            return await self.compare_and_transfer(item)
        except Exception as e:
            self.log.error(f"Unexpected error syncing {path_key(rel_path)}: {e}")
            return FileEvent(rel_path, FileOutcome.FAILED, error=str(e))

    async def compare_and_transfer(self, item: FileWorkItem) -> FileEvent:
        rel_path = item.relative_path
        shown = path_key(rel_path)

        try:
            digest = await self.fingerprinter.fingerprint(item.absolute_path)
        except ReadError as e:
            self.log.error(f"Failed to calculate checksum for: {shown} ({e})")
            return FileEvent(rel_path, FileOutcome.FAILED, error=str(e))

        stored: Optional[str] = None
        try:
            stored = await self.store.get(self.table, rel_path)
        except StoreUnavailable as e:
            # fail open: an unknown fingerprint means transfer
            if not self.dry_run:
                self.log.error(f"Cannot read stored checksum, syncing {shown} anyway: {e}")

        if stored is not None and stored == digest:
            self.log.info(f"File already in sync: {shown}")
            return FileEvent(rel_path, FileOutcome.SKIPPED_UNCHANGED, digest=digest)

        self.log.info(f"Checksums differ, syncing file: {shown}")
        if self.dry_run:
            self.log.file(f"Would sync: {shown}")
            return FileEvent(rel_path, FileOutcome.TRANSFERRED, digest=digest)

        try:
            outcome = await self.transferor.transfer(
                item.absolute_path, self.dest_path(rel_path), self.transfer_options
            )
        except TransferError as e:
            self.log.error(f"Failed to sync: {shown} ({e.reason})")
            return FileEvent(rel_path, FileOutcome.FAILED, digest=digest, error=e.reason)

        if outcome == TransferOutcome.KEPT_EXISTING:
            self.log.warning(
                f"Destination differs and overwrite is disabled, kept existing: {shown}"
            )

        try:
            await self.store.put(self.table, rel_path, digest, self.clock())
        except StoreUnavailable as e:
            # the destination is authoritative; the next run re-transfers this file
            self.log.error(f"Synced {shown} but could not record its checksum: {e}")

        self.log.file(f"Successfully synced: {shown} ({outcome.value})")
        return FileEvent(rel_path, FileOutcome.TRANSFERRED, digest=digest, transfer=outcome)
