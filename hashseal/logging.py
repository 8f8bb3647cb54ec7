"""Diagnostic logging for hashseal.

Diagnostics go to stderr (and optionally a file). The user-facing operation
log printed by the CLI is separate and lives in :mod:`hashseal.oplog`.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_LOGGER_NAME = "hashseal"
_CONSOLE_FORMAT = "[%(component)s] %(levelname)s %(message)s"
_FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a component logger such as ``hashseal.gpg``."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class _ComponentFormatter(logging.Formatter):
    """Renders ``hashseal.gpg`` as ``hashseal:gpg``."""

    def format(self, record: logging.LogRecord) -> str:
        record.component = record.name.replace(".", ":", 1)
        return super().format(record)


def configure_logging(
    *, verbose: bool = False, log_file: Path | None = None
) -> logging.Logger:
    """Install the stderr handler and, when ``log_file`` is set, a DEBUG file sink.

    The console stays at WARNING unless ``verbose`` is set, since stdout
    carries the operation log.
    """
    console_level = logging.DEBUG if verbose else logging.WARNING
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    logger.propagate = False

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_ComponentFormatter(_CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file is not None:
        sink = logging.FileHandler(log_file, encoding="utf-8")
        sink.setLevel(logging.DEBUG)
        sink.setFormatter(logging.Formatter(_FILE_FORMAT))
        logger.addHandler(sink)
        logger.debug("Writing diagnostics to %s", log_file)

    return logger


__all__ = ["configure_logging", "get_logger"]
