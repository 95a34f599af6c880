"""Common test fixtures."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncGenerator, Dict, List, Mapping, Optional

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checksum_sync import db
from checksum_sync.config import SyncConfig, SyncTaskSpec
from checksum_sync.metrics import MetricType
from checksum_sync.repository import FingerprintRepository
from checksum_sync.services import FingerprintService, TransferService
from checksum_sync.sync import SyncTask
from checksum_sync.utils import TaskLogger


@pytest.fixture
def config_home(tmp_path, monkeypatch) -> Path:
    # Patch HOME environment variable for the duration of the test
    monkeypatch.setenv("HOME", str(tmp_path))
    # On Windows, also set USERPROFILE
    if os.name == "nt":
        monkeypatch.setenv("USERPROFILE", str(tmp_path))
    for key in list(os.environ):
        if key.startswith("CHECKSUM_SYNC_"):
            monkeypatch.delenv(key)
    return tmp_path


@pytest.fixture
def source_dir(tmp_path) -> Path:
    path = tmp_path / "source"
    path.mkdir()
    return path


@pytest.fixture
def dest_dir(tmp_path) -> Path:
    path = tmp_path / "dest"
    path.mkdir()
    return path


@pytest.fixture
def db_path(tmp_path) -> Path:
    return tmp_path / "state" / "fingerprints.db"


@pytest_asyncio.fixture
async def session_maker(db_path) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    async with db.engine_session_factory(db_path=db_path, timeout=5.0) as (engine, session_maker):
        yield session_maker


@pytest_asyncio.fixture
async def store(session_maker) -> FingerprintRepository:
    return FingerprintRepository(session_maker)


@pytest.fixture
def fingerprinter() -> FingerprintService:
    return FingerprintService("md5")


@pytest.fixture
def transferor() -> TransferService:
    return TransferService()


@pytest.fixture
def task_spec(source_dir, dest_dir) -> SyncTaskSpec:
    return SyncTaskSpec(name="photos", source_root=source_dir, dest_root=dest_dir, table="photos")


@pytest.fixture
def task_log_file(tmp_path) -> Path:
    return tmp_path / "logs" / "photos.log"


@pytest.fixture
def make_task(store, fingerprinter, transferor, task_spec, task_log_file):
    """Build a SyncTask for the default spec; keyword arguments override options."""
    loggers: List[TaskLogger] = []

    def factory(spec: Optional[SyncTaskSpec] = None, **kwargs) -> SyncTask:
        spec = spec or task_spec
        log = TaskLogger(spec.name, task_log_file).open()
        loggers.append(log)
        return SyncTask(spec, store, fingerprinter, transferor, log, **kwargs)

    yield factory

    for log in loggers:
        log.close()


@pytest.fixture
def sync_config(config_home, task_spec, tmp_path) -> SyncConfig:
    return SyncConfig(
        home=config_home / ".checksum-sync",
        database_path=tmp_path / "state" / "fingerprints.db",
        log_dir=tmp_path / "logs",
        tasks=[task_spec],
    )


@dataclass
class PushedMetric:
    job_name: str
    metric_name: str
    value: float
    metric_type: MetricType
    labels: Optional[Mapping[str, str]] = None


@dataclass
class RecordingSink:
    """Metrics sink that keeps every push in memory."""

    pushes: List[PushedMetric] = field(default_factory=list)
    closed: bool = False

    async def push(self, job_name, metric_name, value, metric_type=MetricType.GAUGE, labels=None):
        self.pushes.append(PushedMetric(job_name, metric_name, value, metric_type, labels))
        return True

    async def aclose(self) -> None:
        self.closed = True

    def values(self, job_name: str) -> Dict[str, float]:
        """Last pushed value of every metric for a job."""
        return {p.metric_name: p.value for p in self.pushes if p.job_name == job_name}

    def names(self, job_name: str) -> List[str]:
        return [p.metric_name for p in self.pushes if p.job_name == job_name]


@pytest.fixture
def recording_sink() -> RecordingSink:
    return RecordingSink()


def _write_file(path: Path, content: str | bytes = "test content") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    if isinstance(content, bytes):
        path.write_bytes(content)
    else:
        path.write_text(content)
    return path


@pytest.fixture
def write_file():
    """Create a file with the given content, creating parent directories."""
    return _write_file
