"""Diagnostic logging for the writer itself.

Insert failures, scheduled-flush failures and schema provisioning are reported
on the `sqllogger` logger (never through the buffered writer, which may be the
thing that is failing).

Usage:
>>> from sqllogger.diagnostics import configure_logging, logger
>>> configure_logging("INFO")
>>> logger.info("writer started")
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s [%(levelname)s] [%(threadName)s] %(message)s"

# Public logger object other modules import
logger = logging.getLogger("sqllogger")

# If nothing configures logging, fall back to console so failures are still visible.
if not logger.handlers:
    _console = logging.StreamHandler()
    _console.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(_console)
    logger.setLevel(logging.WARNING)


def configure_logging(level: int | str = logging.WARNING, log_file: str | Path | None = None) -> logging.Logger:
    """Set the diagnostic level and optionally add a rotating log file.

    Args:
        level: Logging level name or number.
        log_file: When set, diagnostics are also written to this file
            (5 MB per file, 5 backups).
    """
    logger.setLevel(level)

    if log_file is not None:
        target = os.path.abspath(log_file)
        already = any(
            isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename == target
            for h in logger.handlers
        )
        if not already:
            file_handler = logging.handlers.RotatingFileHandler(
                target, maxBytes=5 * 1024 * 1024, backupCount=5, encoding="utf-8"
            )
            file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(file_handler)

    return logger


def shutdown_logging() -> None:
    """Flush and close every file handler added by `configure_logging`."""
    for h in list(logger.handlers):
        if not isinstance(h, logging.handlers.RotatingFileHandler):
            continue
        h.flush()
        h.close()
        logger.removeHandler(h)
