"""
Logging configuration — one setup call per process.

main.py calls ``setup_logging`` before any command runs.  Handlers sit on
the ``relayctl`` package logger, so every module that does
``logger = logging.getLogger(__name__)`` is covered and other libraries
keep their own defaults.

Console level, highest precedence first:
    --debug / --verbose / --quiet  >  RELAYCTL_LOG_LEVEL  >  WARNING

RELAYCTL_LOG_FILE appends a detailed log (level RELAYCTL_LOG_FILE_LEVEL,
default: console level) that starts each run with a session header, for
reading back after a long unattended install.
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

PACKAGE_LOGGER = "relayctl"

# ── Formats ─────────────────────────────────────────────────────

_CONSOLE_FORMATS: dict[int, tuple[str, str | None]] = {
    logging.DEBUG: ("%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    logging.INFO: ("%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
    logging.WARNING: ("%(message)s", None),
}

_FILE_FORMAT = "%(asctime)s %(process)d %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> logging.Logger:
    """Configure the relayctl logger; safe to call again (handlers are replaced).

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Optional log file, appended to; parent directories are created.
        log_file_level: Level for the file.  Defaults to the console level.

    Returns:
        The configured package logger.
    """
    console_level = _parse_level(level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(_console_formatter(console_level))
    logger.addHandler(console)

    effective = console_level
    file_handler: logging.Handler | None = None
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        effective = min(effective, file_level)
        file_handler = _file_handler(Path(log_file), file_level)
        logger.addHandler(file_handler)

    logger.setLevel(effective)
    logger.propagate = False
    logging.raiseExceptions = False

    if file_handler is not None:
        # header goes to the file whatever its level
        file_handler.handle(logger.makeRecord(
            PACKAGE_LOGGER, logging.INFO, __file__, 0,
            "relayctl session pid=%d argv=%s", (os.getpid(), " ".join(sys.argv[1:])), None,
        ))
    return logger


def _console_formatter(level: int) -> logging.Formatter:
    for threshold in (logging.DEBUG, logging.INFO):
        if level <= threshold:
            fmt, datefmt = _CONSOLE_FORMATS[threshold]
            return logging.Formatter(fmt, datefmt=datefmt)
    fmt, datefmt = _CONSOLE_FORMATS[logging.WARNING]
    return logging.Formatter(fmt, datefmt=datefmt)


def _file_handler(path: Path, level: int) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, mode="a", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name to its numeric value; unknown names mean WARNING."""
    if not level:
        return logging.WARNING
    numeric = logging.getLevelName(level.upper())
    return numeric if isinstance(numeric, int) else logging.WARNING
