"""Configuration management for checksum-sync."""

import hashlib
import json
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from checksum_sync.models import validate_table_name
from checksum_sync.services.exceptions import ConfigError

DATA_DIR_NAME = ".checksum-sync"
CONFIG_FILE_NAME = "config.json"
DATABASE_NAME = "fingerprints.db"
LOG_DIR_NAME = "logs"


def default_home() -> Path:
    return Path.home() / DATA_DIR_NAME


class SyncTaskSpec(BaseModel):
    """One (source, destination, table) sync task."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Task name, unique within a run")
    source_root: Path
    dest_root: Path
    table: str = Field(description="Fingerprint table owned by this task")
    exclude_patterns: Tuple[str, ...] = Field(
        default=(), description="Extra path patterns skipped during the walk"
    )
    overwrite_existing: Optional[bool] = Field(
        default=None, description="Overrides the global overwrite policy when set"
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v or "/" in v:
            raise ValueError("task name must be non-empty and must not contain '/'")
        return v

    @field_validator("table")
    @classmethod
    def validate_table(cls, v: str) -> str:
        return validate_table_name(v)

    @classmethod
    def parse(cls, text: str) -> "SyncTaskSpec":
        """
        Parse a task from its `name=source|dest|table` form.

        Examples:
            >>> SyncTaskSpec.parse("photos=/data/photos|/backup/photos|photos").table
            'photos'
        """
        name, sep, triple = text.partition("=")
        parts = triple.split("|")
        if not sep or len(parts) != 3 or not all(p.strip() for p in parts):
            raise ConfigError(f"Invalid task {text!r}, expected name=source|dest|table")
        source, dest, table = (p.strip() for p in parts)
        try:
            return cls(name=name, source_root=Path(source), dest_root=Path(dest), table=table)
        except ValidationError as e:
            raise ConfigError(f"Invalid task {text!r}: {e}") from e


def validate_tasks(tasks: Sequence[SyncTaskSpec], parallel: bool = False) -> None:
    """
    Check a set of tasks can run together.

    Names must be unique. Tasks that run concurrently must not share a
    fingerprint table.

    Raises:
        ConfigError: If the tasks conflict
    """
    names = [t.name for t in tasks]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"Duplicate task names: {', '.join(duplicates)}")

    if parallel:
        tables = [t.table for t in tasks]
        shared = sorted({t for t in tables if tables.count(t) > 1})
        if shared:
            raise ConfigError(
                f"Tasks running in parallel must use separate tables, shared: {', '.join(shared)}"
            )


class SyncConfig(BaseSettings):
    """Configuration for a checksum-sync installation."""

    model_config = SettingsConfigDict(
        env_prefix="CHECKSUM_SYNC_",
        extra="ignore",
        env_file=".env",
        env_file_encoding="utf-8",
        frozen=True,
    )

    home: Path = Field(
        default_factory=default_home,
        description="Base path for checksum-sync state",
    )
    database_path: Optional[Path] = Field(
        default=None, description="Fingerprint database, defaults to <home>/fingerprints.db"
    )
    log_dir: Optional[Path] = Field(
        default=None, description="Log directory, defaults to <home>/logs"
    )
    log_level: str = "INFO"

    pushgateway_url: Optional[str] = Field(
        default=None, description="Prometheus Pushgateway base URL, metrics are off when unset"
    )
    metrics_timeout: float = Field(default=10.0, gt=0)

    checksum_algorithm: str = "md5"
    workers: int = Field(default=1, ge=1, description="Concurrent files per task")
    parallel_tasks: bool = False
    store_timeout: float = Field(default=30.0, gt=0)

    exclude_patterns: List[str] = Field(default_factory=list)
    overwrite_existing: bool = False

    tasks: List[SyncTaskSpec] = Field(default_factory=list)

    @field_validator("checksum_algorithm")
    @classmethod
    def validate_algorithm(cls, v: str) -> str:
        if v.lower() not in {a.lower() for a in hashlib.algorithms_available}:
            raise ValueError(f"unsupported checksum algorithm: {v}")
        return v.lower()

    @field_validator("pushgateway_url")
    @classmethod
    def validate_pushgateway_url(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        v = v.strip()
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"invalid Pushgateway URL {v!r}: {e}") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"Pushgateway URL must be http or https with a host: {v!r}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()

    @model_validator(mode="after")
    def validate_task_set(self) -> "SyncConfig":
        try:
            validate_tasks(self.tasks, parallel=self.parallel_tasks)
        except ConfigError as e:
            raise ValueError(str(e)) from e
        return self

    @property
    def resolved_database_path(self) -> Path:
        return self.database_path or self.home / DATABASE_NAME

    @property
    def resolved_log_dir(self) -> Path:
        return self.log_dir or self.home / LOG_DIR_NAME

    def get_task(self, name: str) -> SyncTaskSpec:
        for task in self.tasks:
            if task.name == name:
                return task
        raise ConfigError(f"Unknown task: {name}")

    def exclude_patterns_for(self, task: SyncTaskSpec) -> Tuple[str, ...]:
        return tuple(self.exclude_patterns) + tuple(task.exclude_patterns)

    def overwrite_for(self, task: SyncTaskSpec) -> bool:
        if task.overwrite_existing is None:
            return self.overwrite_existing
        return task.overwrite_existing


class ConfigManager:
    """Loads and saves the JSON config file."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or default_home() / CONFIG_FILE_NAME
        self.config_dir = self.config_file.parent
        self._config: Optional[SyncConfig] = None

    @property
    def config(self) -> SyncConfig:
        if self._config is None:
            self._config = self.load_config()
        return self._config

    def load_config(self) -> SyncConfig:
        """
        Load configuration from the config file.

        Environment variables with the CHECKSUM_SYNC_ prefix apply to settings
        missing from the file. A missing file yields the defaults.

        Raises:
            ConfigError: If the file cannot be parsed or is invalid
        """
        if not self.config_file.exists():
            logger.debug(f"No config file at {self.config_file}, using defaults")
            return SyncConfig()

        try:
            data = json.loads(self.config_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read config file {self.config_file}: {e}") from e

        try:
            return SyncConfig(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config file {self.config_file}: {e}") from e

    def save_config(self, config: SyncConfig) -> None:
        """Write configuration to the config file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.write_text(
            json.dumps(config.model_dump(mode="json"), indent=2), encoding="utf-8"
        )
        self._config = config
