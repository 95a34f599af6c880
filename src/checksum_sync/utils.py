"""Utility functions for checksum-sync."""

import sys
from datetime import date
from pathlib import Path
from types import TracebackType
from typing import Optional, Type
from uuid import uuid4

from loguru import logger

# Per-file transfer events are logged at this level, between INFO and WARNING
FILE_LEVEL = "FILE"
FILE_LEVEL_NO = 22

RUN_LOG_NAME = "main.log"
RUN_STREAM = "run"

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <7}</level> | "
    "{extra[log_stream]} | {message}"
)


def ensure_file_level() -> None:
    """Register the FILE log level once."""
    try:
        logger.level(FILE_LEVEL)
    except ValueError:
        logger.level(FILE_LEVEL, no=FILE_LEVEL_NO, color="<cyan>")


ensure_file_level()
logger.configure(extra={"log_stream": "-"})


def format_duration(seconds: float) -> str:
    """
    Format a duration as hours, minutes and seconds.

    Examples:
        >>> format_duration(3725)
        '1h 2m 5s'
    """
    total = int(seconds)
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours}h {minutes}m {secs}s"


def line_format(record) -> str:
    """Loguru format for task and run log files.

    Produces `[YYYY-mm-dd HH:MM:SS] [LEVEL] message` with an optional
    ` (Duration: ...)` suffix taken from the `duration` extra.
    """
    suffix = ""
    duration = record["extra"].get("duration")
    if duration:
        suffix = " (Duration: {extra[duration]})"
    return "[{time:YYYY-MM-DD HH:mm:ss}] [{level}] {message}" + suffix + "\n{exception}"


def daily_log_dir(log_dir: Path, day: Optional[date] = None) -> Path:
    """Directory holding one day's logs: `<log_dir>/<YYYYMMDD>`."""
    day = day or date.today()
    return log_dir / day.strftime("%Y%m%d")


def task_log_path(log_dir: Path, task_name: str, day: Optional[date] = None) -> Path:
    return daily_log_dir(log_dir, day) / f"logRsync_{task_name}.log"


def run_log_path(log_dir: Path, day: Optional[date] = None) -> Path:
    return daily_log_dir(log_dir, day) / RUN_LOG_NAME


def setup_logging(
    log_level: str = "INFO", log_file: Optional[Path] = None, console: bool = True
) -> None:
    """
    Configure loguru sinks.

    Args:
        log_level: Minimum level for the console and file sinks
        log_file: Optional rotating file sink with every log stream
        console: Log to stderr
    """
    logger.remove()

    if console:
        logger.add(sys.stderr, level=log_level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            str(log_file),
            level=log_level,
            format=line_format,
            rotation="10 MB",
            retention=10,
            encoding="utf-8",
            backtrace=False,
            diagnose=False,
        )


class TaskLogger:
    """
    Appends timestamped lines for one log stream to its own file.

    Lines look like `[2024-01-31 02:00:00] [INFO] message (Duration: 0h 1m 3s)`.
    Messages also reach any sink configured by `setup_logging`.
    """

    def __init__(self, stream: str, log_file: Optional[Path] = None):
        self.stream = stream
        self.log_file = log_file
        self._sink_id: Optional[int] = None
        # streams can share a name, each logger only feeds its own file
        self._sink_key = uuid4().hex
        self._logger = logger.bind(log_stream=stream, log_sink=self._sink_key)

    def open(self) -> "TaskLogger":
        if self.log_file is not None and self._sink_id is None:
            self.log_file.parent.mkdir(parents=True, exist_ok=True)
            sink_key = self._sink_key
            self._sink_id = logger.add(
                str(self.log_file),
                level="INFO",
                format=line_format,
                filter=lambda record: record["extra"].get("log_sink") == sink_key,
                encoding="utf-8",
                backtrace=False,
                diagnose=False,
            )
        return self

    def close(self) -> None:
        if self._sink_id is not None:
            logger.remove(self._sink_id)
            self._sink_id = None

    def __enter__(self) -> "TaskLogger":
        return self.open()

    def __exit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        self.close()

    def log(self, level: str, message: str, duration: Optional[str] = None) -> None:
        self._logger.bind(duration=duration).log(level, message)

    def info(self, message: str, duration: Optional[str] = None) -> None:
        self.log("INFO", message, duration)

    def warning(self, message: str) -> None:
        self.log("WARNING", message)

    def error(self, message: str) -> None:
        self.log("ERROR", message)

    def file(self, message: str) -> None:
        self.log(FILE_LEVEL, message)
