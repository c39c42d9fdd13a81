"""Logging setup for the data_guard command line and background service."""

from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_BACKUP_DAYS = 14

# Loggers of the telegram dispatcher stack that log every HTTP request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "telegram")


def _resolve_level(level: str | None) -> int:
    name = (level or os.environ.get("LOG_LEVEL") or "INFO").strip().upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _has_file_handler(root: logging.Logger, path: Path) -> bool:
    target = str(path.resolve())
    return any(
        isinstance(h, logging.FileHandler) and h.baseFilename == target
        for h in root.handlers
    )


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure the root logger for data_guard.

    ``level`` overrides ``LOG_LEVEL``. When ``log_file`` (or
    ``DATA_GUARD_LOG_FILE``) is set, records also go to that file, rotated at
    midnight and kept for ``LOG_BACKUP_DAYS`` days, so a long-running ``serve``
    keeps a history of alert decisions. Calling it again does not duplicate
    handlers.
    """
    root = logging.getLogger()
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    if not any(type(h) is logging.StreamHandler for h in root.handlers):
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        root.addHandler(stream)

    file_name = log_file or os.environ.get("DATA_GUARD_LOG_FILE")
    if file_name:
        path = Path(file_name).expanduser()
        if not _has_file_handler(root, path):
            path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = TimedRotatingFileHandler(
                path, when="midnight", backupCount=LOG_BACKUP_DAYS, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)

    root.setLevel(_resolve_level(level))
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


__all__ = ["setup_logging"]
