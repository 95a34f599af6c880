"""Runs configured sync tasks and publishes their outcome."""

import asyncio
import time
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Sequence

from checksum_sync.config import SyncConfig, SyncTaskSpec, validate_tasks
from checksum_sync.metrics import MetricsSink, MetricType, NullSink
from checksum_sync.repository import FingerprintRepository
from checksum_sync.services import FingerprintService, TransferService
from checksum_sync.sync.sync_service import FileListener, SyncTask
from checksum_sync.sync.utils import CancelToken, TaskReport, TaskState
from checksum_sync.utils import (
    RUN_STREAM,
    TaskLogger,
    format_duration,
    run_log_path,
    task_log_path,
)


class RunStatus(str, Enum):
    SUCCESS = "success"
    PARTIAL_FAILURE = "partial_failure"


@dataclass
class RunReport:
    """Outcome of a run over all selected tasks."""

    tasks: List[TaskReport] = field(default_factory=list)
    duration: float = 0.0

    @property
    def status(self) -> RunStatus:
        if any(report.failed for report in self.tasks):
            return RunStatus.PARTIAL_FAILURE
        return RunStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.status == RunStatus.SUCCESS else 1

    @property
    def failed_tasks(self) -> List[str]:
        return [report.name for report in self.tasks if report.failed]


class TaskRunner:
    """
    Runs sync tasks and reports each one to the metrics sink and logs.

    Tasks run one after another unless `config.parallel_tasks` is set, in
    which case they run concurrently; concurrent tasks must use separate
    fingerprint tables. A task that cannot start is reported as failed and
    makes the run a partial failure; per-file failures do not.
    """

    def __init__(
        self,
        config: SyncConfig,
        store: FingerprintRepository,
        sink: Optional[MetricsSink] = None,
        *,
        fingerprinter: Optional[FingerprintService] = None,
        transferor: Optional[TransferService] = None,
        cancel_token: Optional[CancelToken] = None,
        dry_run: bool = False,
        write_log_files: bool = True,
        listener: Optional[FileListener] = None,
    ):
        self.config = config
        self.store = store
        self.sink = sink or NullSink()
        self.fingerprinter = fingerprinter or FingerprintService(config.checksum_algorithm)
        self.transferor = transferor or TransferService()
        self.cancel_token = cancel_token or CancelToken()
        self.dry_run = dry_run
        self.write_log_files = write_log_files
        self.listener = listener

    def _log_file(self, path: Path) -> Optional[Path]:
        return path if self.write_log_files else None

    async def run(self, tasks: Optional[Sequence[SyncTaskSpec]] = None) -> RunReport:
        """
        Run tasks, all configured tasks by default.

        Raises:
            ConfigError: If the tasks cannot run together
        """
        tasks = list(self.config.tasks if tasks is None else tasks)
        validate_tasks(tasks, parallel=self.config.parallel_tasks)

        log_dir = self.config.resolved_log_dir
        start = time.monotonic()
        report = RunReport()

        with TaskLogger(RUN_STREAM, self._log_file(run_log_path(log_dir))) as run_log:
            run_log.info(f"Starting sync run with {len(tasks)} task(s)")

            if self.config.parallel_tasks:
                results = await asyncio.gather(*(self.run_task(spec, run_log) for spec in tasks))
                report.tasks.extend(results)
            else:
                for spec in tasks:
                    report.tasks.append(await self.run_task(spec, run_log))

            report.duration = time.monotonic() - start
            run_log.info("All tasks completed", duration=format_duration(report.duration))
            if report.failed_tasks:
                run_log.error(
                    f"Sync run finished with failed tasks: {', '.join(report.failed_tasks)}. "
                    "Check logs for details."
                )

        return report

    async def run_task(self, spec: SyncTaskSpec, run_log: TaskLogger) -> TaskReport:
        """Run one task between its activity markers and publish its counters."""
        run_log.info(f"Starting task: {spec.name}")
        start = time.monotonic()
        await self.sink.push(spec.name, "sync_active", 1)

        log_file = self._log_file(task_log_path(self.config.resolved_log_dir, spec.name))
        try:
            with TaskLogger(spec.name, log_file) as task_log:
                task = SyncTask(
                    spec,
                    self.store,
                    self.fingerprinter,
                    self.transferor,
                    task_log,
                    workers=self.config.workers,
                    exclude_patterns=self.config.exclude_patterns_for(spec),
                    overwrite_existing=self.config.overwrite_for(spec),
                    dry_run=self.dry_run,
                    cancel_token=self.cancel_token,
                    listener=self.listener,
                )
                try:
                    report = await task.run()
                except Exception as e:
                    task_log.error(f"Sync task {spec.name} aborted: {e}")
                    report = TaskReport(
                        name=spec.name,
                        table=spec.table,
                        state=TaskState.FAILED,
                        counters=task.counters.snapshot(),
                        duration=time.monotonic() - start,
                        error=str(e) or type(e).__name__,
                    )

            await self.publish(report)
        finally:
            await self.sink.push(spec.name, "sync_active", 0)

        duration = format_duration(report.duration)
        if report.failed:
            run_log.log("ERROR", f"Task {spec.name} failed: {report.error}", duration)
        else:
            run_log.info(f"Task {spec.name} completed", duration=duration)
        return report

    async def publish(self, report: TaskReport) -> None:
        """Push a task's outcome. A failed task pushes no file counters."""
        job = report.name
        if report.failed:
            await self.sink.push(job, "sync_task_failed", 1)
            await self.sink.push(
                job, "sync_error_message", 1, labels={"error": report.error or "unknown"}
            )
            return

        c = report.counters
        for metric_name, value in (
            ("discovered_files", c.total_discovered),
            ("processed_files", c.processed),
            ("synced_files", c.transferred),
            ("skipped_files", c.skipped_unchanged),
            ("failed_files", c.failed),
        ):
            await self.sink.push(job, metric_name, value, MetricType.GAUGE)
        await self.sink.push(job, "sync_duration_seconds", round(report.duration, 3))
        await self.sink.push(job, "sync_task_failed", 0)
