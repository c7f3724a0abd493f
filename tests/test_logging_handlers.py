import logging
import os
from datetime import datetime, timedelta, timezone
from pathlib import Path

from narrator.logging_handlers import DateStampedFileHandler, cleanup_old_logs


def test_date_stamped_file_handler_creates_expected_path(tmp_path) -> None:
    current = datetime(2024, 5, 26, 12, 34, 56, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        tmp_path / "logs",
        current_time=current,
    )
    try:
        expected_file = (tmp_path / "logs" / "2024-05-26" / "narrator_2024-05-26_12-34-56.log").resolve()
        file_path = Path(handler.baseFilename)
        assert file_path == expected_file
        assert file_path.exists()

        record = logging.LogRecord(
            name="test",
            level=logging.INFO,
            pathname=__file__,
            lineno=0,
            msg="chunk 1 completed",
            args=(),
            exc_info=None,
        )
        handler.emit(record)

        contents = file_path.read_text(encoding="utf-8")
        assert "chunk 1 completed" in contents
        assert "[INFO]" in contents
    finally:
        handler.close()


def test_handler_uses_configured_zone_and_prefix(tmp_path) -> None:
    current = datetime(2023, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
    handler = DateStampedFileHandler(
        tmp_path,
        prefix="worker",
        zone=timezone(timedelta(hours=-5)),
        current_time=current,
    )
    try:
        expected_file = (tmp_path / "2023-01-01" / "worker_2023-01-01_22-04-05.log").resolve()
        assert Path(handler.baseFilename) == expected_file
    finally:
        handler.close()


def _age(path: Path, delta: timedelta) -> None:
    stamp = (datetime.now(timezone.utc) - delta).timestamp()
    os.utime(path, (stamp, stamp))


def test_cleanup_old_logs(tmp_path) -> None:
    log_dir = tmp_path / "logs"
    log_dir.mkdir()

    old_file = log_dir / "old_log.log"
    old_file.write_text("old content")
    _age(old_file, timedelta(days=3))

    recent_file = log_dir / "recent_log.log"
    recent_file.write_text("recent content")
    _age(recent_file, timedelta(days=1))

    current_file = log_dir / "current_log.log"
    current_file.write_text("current content")

    files_deleted, errors = cleanup_old_logs(log_dir, retention_hours=48)

    assert files_deleted == 1
    assert errors == 0
    assert not old_file.exists()
    assert recent_file.exists()
    assert current_file.exists()


def test_cleanup_old_logs_disabled(tmp_path) -> None:
    log_dir = tmp_path / "logs"
    log_dir.mkdir()
    old_file = log_dir / "old_log.log"
    old_file.write_text("content")
    _age(old_file, timedelta(days=100))

    files_deleted, errors = cleanup_old_logs(log_dir, retention_hours=0)

    assert (files_deleted, errors) == (0, 0)
    assert old_file.exists()


def test_cleanup_old_logs_missing_directory(tmp_path) -> None:
    assert cleanup_old_logs(tmp_path / "absent", retention_hours=48) == (0, 0)


def test_cleanup_old_logs_removes_empty_directories(tmp_path) -> None:
    log_dir = tmp_path / "logs"
    date_dir = log_dir / "2024-01-01"
    date_dir.mkdir(parents=True)
    old_file = date_dir / "old_log.log"
    old_file.write_text("content")
    _age(old_file, timedelta(days=100))

    files_deleted, errors = cleanup_old_logs(log_dir, retention_hours=48)

    assert files_deleted == 1
    assert errors == 0
    assert not date_dir.exists()
