"""Logging handlers for narration service logs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone, tzinfo
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class DateStampedFileHandler(logging.FileHandler):
    """File handler writing to ``<directory>/<YYYY-MM-DD>/<prefix>_<time>.log``."""

    def __init__(
        self,
        directory: str | Path,
        *,
        prefix: str = "narrator",
        zone: tzinfo | None = None,
        encoding: str | None = "utf-8",
        mode: str = "a",
        delay: bool = False,
        errors: Optional[str] = None,
        current_time: datetime | None = None,
    ) -> None:
        timestamp = (current_time or datetime.now(timezone.utc)).astimezone(
            zone or timezone.utc
        )
        date_folder = timestamp.strftime("%Y-%m-%d")
        human_time = timestamp.strftime("%Y-%m-%d_%H-%M-%S")
        log_path = (Path(directory) / date_folder / f"{prefix}_{human_time}.log").resolve()

        log_path.parent.mkdir(parents=True, exist_ok=True)
        super().__init__(
            log_path,
            mode=mode,
            encoding=encoding,
            delay=delay,
            errors=errors,
        )
        self.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))


def cleanup_old_logs(
    log_directory: str | Path,
    retention_hours: int,
    logger: logging.Logger | None = None,
) -> tuple[int, int]:
    """
    Delete ``*.log`` files older than the retention period.

    Args:
        log_directory: Root directory holding date-stamped log folders
        retention_hours: Files older than this many hours are deleted (0 = disabled)
        logger: Optional logger for reporting cleanup activity

    Returns:
        Tuple of (files_deleted, errors_encountered)
    """
    if retention_hours <= 0:
        return (0, 0)

    dir_path = Path(log_directory).resolve()
    if not dir_path.exists():
        return (0, 0)

    cutoff_time = datetime.now(timezone.utc) - timedelta(hours=retention_hours)
    files_deleted = 0
    errors = 0

    for log_file in dir_path.rglob("*.log"):
        try:
            mtime = datetime.fromtimestamp(log_file.stat().st_mtime, tz=timezone.utc)
            if mtime < cutoff_time:
                log_file.unlink()
                files_deleted += 1
                if logger:
                    logger.debug("Deleted old log file: %s", log_file)
        except OSError as e:
            errors += 1
            if logger:
                logger.warning("Failed to delete %s: %s", log_file, e)

    # Drop date folders emptied by the sweep
    for date_dir in dir_path.iterdir():
        if date_dir.is_dir() and not any(date_dir.iterdir()):
            try:
                date_dir.rmdir()
            except OSError:
                errors += 1

    if logger and files_deleted > 0:
        logger.info(
            "Log cleanup complete: %d file(s) deleted, %d error(s) encountered",
            files_deleted,
            errors,
        )

    return (files_deleted, errors)


__all__ = ["DateStampedFileHandler", "LOG_DATE_FORMAT", "LOG_FORMAT", "cleanup_old_logs"]
