"""KWOTD Notifier — Logging Setup.

Every module logs through `logger = get_logger(__name__)`. The first call
installs two handlers on the root logger:

  - console: colored, INFO by default, changed by `configure_logging()`
  - file:    plain, DEBUG, rotated at 10 MB with 5 backups

Third-party libraries that log routine work at INFO (each HTTP request,
each scheduler job, each polling cycle) are limited to WARNING on the
console; the file still receives everything at DEBUG.
"""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

DEFAULT_LOG_DIR = Path(__file__).resolve().parent.parent.parent / "logs"
LOG_FILE_NAME = "kwotd_notifier.log"
MAX_BYTES = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5

CONSOLE_FORMAT = "%(asctime)s │ %(levelname)s │ %(name)s │ %(message)s"
FILE_FORMAT = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

NOISY_LOGGERS = ("httpx", "httpcore", "apscheduler", "telegram")

LEVEL_COLORS = {
    logging.DEBUG: "\033[36m",     # Cyan
    logging.INFO: "\033[32m",      # Green
    logging.WARNING: "\033[33m",   # Yellow
    logging.ERROR: "\033[31m",     # Red
    logging.CRITICAL: "\033[41m",  # Red background
}
RESET = "\033[0m"

_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


class ColoredFormatter(logging.Formatter):
    """Console formatter: level name and timestamp in the level's color."""

    def formatTime(self, record: logging.LogRecord, datefmt: Optional[str] = None) -> str:
        color = LEVEL_COLORS.get(record.levelno, "")
        return f"{color}{super().formatTime(record, datefmt)}{RESET}"

    def format(self, record: logging.LogRecord) -> str:
        # Other handlers format the same record object.
        record = logging.makeLogRecord(record.__dict__)
        color = LEVEL_COLORS.get(record.levelno, "")
        record.levelname = f"{color}{record.levelname:<8}{RESET}"
        return super().format(record)


class _NoisyLibraryFilter(logging.Filter):
    """Let library records through only at WARNING and above."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.levelno >= logging.WARNING:
            return True
        return not record.name.startswith(NOISY_LOGGERS)


def log_dir() -> Path:
    """Directory for the log file; KWOTD_LOG_DIR overrides the default."""
    override = os.environ.get("KWOTD_LOG_DIR")
    return Path(override) if override else DEFAULT_LOG_DIR


def _install_handlers() -> None:
    global _console_handler, _file_handler
    if _console_handler is not None:
        return

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)

    _console_handler = logging.StreamHandler(sys.stdout)
    _console_handler.setLevel(logging.INFO)
    _console_handler.setFormatter(ColoredFormatter(CONSOLE_FORMAT, DATE_FORMAT))
    _console_handler.addFilter(_NoisyLibraryFilter())
    root.addHandler(_console_handler)

    directory = log_dir()
    directory.mkdir(parents=True, exist_ok=True)
    _file_handler = RotatingFileHandler(
        filename=str(directory / LOG_FILE_NAME),
        maxBytes=MAX_BYTES,
        backupCount=BACKUP_COUNT,
        encoding="utf-8",
    )
    _file_handler.setLevel(logging.DEBUG)
    _file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
    root.addHandler(_file_handler)


def configure_logging(level: str = "INFO") -> None:
    """Apply the configured console level (settings.yaml `logging.level`).

    Args:
        level: A level name such as "DEBUG" or "WARNING".

    Raises:
        ValueError: If `level` is not a logging level name.
    """
    _install_handlers()
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level!r}")
    _console_handler.setLevel(numeric)


def get_logger(name: str) -> logging.Logger:
    """Named logger, with the global handlers installed on first use.

    Args:
        name: Usually the calling module's __name__.
    """
    _install_handlers()
    return logging.getLogger(name)
