"""
Logging configuration for netsweep.

Console records go to stderr so that ``--json`` output on stdout stays
parseable. An optional rotating file log always captures DEBUG, which
is where per-probe failures are recorded.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


PACKAGE_LOGGER = "netsweep"
DEFAULT_LOG_PATH = Path.home() / ".netsweep" / "logs" / "netsweep.log"

CONSOLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
# Probe failures are logged from a handful of call sites; keep them locatable
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-24s | %(funcName)-20s | %(lineno)-4d | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str) -> int:
    level = logging.getLevelName(name.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {name}")
    return level


def setup_logging(
    level: str = "WARNING",
    log_file: str | Path | None = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 5,
    enable_console: bool = True,
) -> logging.Logger:
    """
    Configure the ``netsweep`` logger.

    Args:
        level: Console level name (DEBUG, INFO, WARNING, ...)
        log_file: Path of a rotating DEBUG log; no file log when None
        max_bytes: Size at which the file log rotates
        backup_count: Rotated files to keep

    Returns:
        The package logger
    """
    console_level = _level(level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    # Replace, never stack, handlers from an earlier call
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    if enable_console:
        console = logging.StreamHandler(sys.stderr)
        console.setLevel(console_level)
        console.setFormatter(logging.Formatter(CONSOLE_FORMAT, DATE_FORMAT))
        logger.addHandler(console)

    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)

    logger.setLevel(logging.DEBUG if log_file is not None else console_level)
    logger.propagate = False
    return logger


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def configure_logging(
    debug: bool = False,
    log_file: str | None = None,
    level: str = "WARNING",
) -> logging.Logger:
    """CLI entry point: ``debug`` overrides ``level``; ``log_file`` adds a file log."""
    return setup_logging(level="DEBUG" if debug else level, log_file=log_file)
