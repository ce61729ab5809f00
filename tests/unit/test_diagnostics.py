from __future__ import annotations

import logging
import logging.handlers
from pathlib import Path

import pytest

from sqllogger.diagnostics import configure_logging, logger, shutdown_logging


@pytest.fixture(autouse=True)
def _restore_level():
    level = logger.level
    yield
    shutdown_logging()
    logger.setLevel(level)


def test_console_fallback_installed():
    assert any(type(h) is logging.StreamHandler for h in logger.handlers)


def test_configure_logging_adds_file_handler_once(tmp_path: Path):
    log_file = tmp_path / "sqllogger.log"

    configure_logging("INFO", log_file)
    configure_logging("INFO", log_file)

    file_handlers = [h for h in logger.handlers if isinstance(h, logging.handlers.RotatingFileHandler)]
    assert len(file_handlers) == 1
    assert logger.level == logging.INFO

    logger.info("Created log table %s", "logs")
    shutdown_logging()

    text = log_file.read_text(encoding="utf-8")
    assert "[INFO]" in text
    assert "Created log table logs" in text
    assert not any(isinstance(h, logging.handlers.RotatingFileHandler) for h in logger.handlers)
