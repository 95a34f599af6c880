from .scanner import FileWorkItem, ScanResult, SourceScanner
from .sync_service import SyncTask
from .task_runner import RunReport, RunStatus, TaskRunner
from .utils import CancelToken, FileEvent, FileOutcome, SyncCounters, TaskReport, TaskState

__all__ = [
    "CancelToken",
    "FileEvent",
    "FileOutcome",
    "FileWorkItem",
    "RunReport",
    "RunStatus",
    "ScanResult",
    "SourceScanner",
    "SyncCounters",
    "SyncTask",
    "TaskReport",
    "TaskRunner",
    "TaskState",
]
