"""Tests for logging utilities."""

from __future__ import annotations

import json
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

from feedsync import logging_utils


def _reset_logger() -> logging.Logger:
    logger = logging.getLogger("feedsync")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True
    return logger


def test_setup_logging_creates_rotating_files(tmp_path: Path):
    logger = _reset_logger()
    log_path = logging_utils.setup_logging(tmp_path, level="INFO", console=False)

    assert log_path == tmp_path / "logs" / "feedsync.log"
    assert log_path.exists()

    file_handlers = [
        handler for handler in logger.handlers if isinstance(handler, RotatingFileHandler)
    ]
    assert [h.baseFilename for h in file_handlers] == [
        str(log_path),
        str(tmp_path / "logs" / "feedsync.jsonl"),
    ]
    assert logger.propagate is False


def test_setup_logging_without_structured_log(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="DEBUG", structured=False, console=False)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG


def test_setup_logging_is_idempotent(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO")
    handler_count = len(logger.handlers)

    logging_utils.setup_logging(tmp_path, level="INFO")
    assert len(logger.handlers) == handler_count


def test_structured_log_includes_unit(tmp_path: Path):
    logger = _reset_logger()
    logging_utils.setup_logging(tmp_path, level="INFO", console=False)

    logging.getLogger("feedsync.sync.storage").error("boom", extra={"unit": "inventory.f.r.x"})
    for handler in logger.handlers:
        handler.flush()

    line = (tmp_path / "logs" / "feedsync.jsonl").read_text(encoding="utf-8").strip().splitlines()[-1]
    entry = json.loads(line)
    assert entry["message"] == "boom"
    assert entry["level"] == "ERROR"
    assert entry["logger"] == "feedsync.sync.storage"
    assert entry["unit"] == "inventory.f.r.x"


def test_setup_logging_falls_back_when_permission_denied(tmp_path: Path, monkeypatch):
    _reset_logger()
    home_dir = tmp_path / "home"
    primary_parent = home_dir / "logs"
    original_mkdir = Path.mkdir

    def fake_mkdir(self, *args, **kwargs):
        if str(self).startswith(str(primary_parent)):
            raise PermissionError
        return original_mkdir(self, *args, **kwargs)

    monkeypatch.setattr(Path, "mkdir", fake_mkdir)
    fallback_root = tmp_path / "fallback"
    monkeypatch.setattr(logging_utils, "FALLBACK_ROOT", fallback_root)

    log_path = logging_utils.setup_logging(home_dir, level="INFO", console=False)
    expected = fallback_root / "logs" / "feedsync.log"

    assert log_path == expected
    assert expected.exists()
