"""
Logging for checkup.

One package logger, `checkup`, with a rich console handler attached at
import time and an optional rotating log file added by the server command.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.logging import RichHandler

from checkup.constants import (
    DEBUG_LOG_FORMAT,
    INFO_LOG_FORMAT,
    LOG_DATE_FORMAT,
    LOG_FILE_BACKUP_COUNT,
    LOG_FILE_MAX_BYTES,
    LOG_FILE_NAME,
    LOG_LEVEL_ENV_VAR,
    LOGGER_NAME,
)

logger = logging.getLogger(LOGGER_NAME)

# The file handler added by add_file_logging(), replaced on each call
_file_handler: Optional[RotatingFileHandler] = None


def _level_from_name(level_name: str) -> Optional[int]:
    level = logging.getLevelName(str(level_name).upper())
    return level if isinstance(level, int) else None


def _formatter_for(handler: logging.Handler, level: int) -> logging.Formatter:
    """
    Pick a formatter for `handler` at `level`.

    The rich console renders its own time and level columns, so it only gets
    the message. Other handlers add the logger name below INFO.
    """
    if isinstance(handler, RichHandler):
        return logging.Formatter("%(message)s")
    fmt = INFO_LOG_FORMAT if level >= logging.INFO else DEBUG_LOG_FORMAT
    return logging.Formatter(fmt, datefmt=LOG_DATE_FORMAT)


def set_log_level(level_name: str) -> None:
    """
    Change the level of the checkup logger and every handler attached to it.

    An unknown level name is reported as a warning and nothing changes.

    Parameters:
        level_name (str): Level name in any case, e.g. "debug" or "WARNING".
    """
    level = _level_from_name(level_name)
    if level is None:
        logger.warning("Unknown log level %r; keeping the current level", level_name)
        return

    logger.setLevel(level)
    for handler in logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(_formatter_for(handler, level))
    logger.log(level, "Log level set to %s", logging.getLevelName(level))


def add_file_logging(log_dir_path: Path, level_name: str = "INFO") -> None:
    """
    Also write log records to `checkup.log` in `log_dir_path`.

    The file rotates at LOG_FILE_MAX_BYTES and keeps LOG_FILE_BACKUP_COUNT
    old copies. Calling this again swaps the previous file handler out.
    """
    global _file_handler
    if _file_handler is not None:
        logger.removeHandler(_file_handler)
        _file_handler.close()
        _file_handler = None

    level = _level_from_name(level_name)
    if level is None:
        logger.warning("Unknown file log level %r; using INFO", level_name)
        level = logging.INFO

    log_dir_path.mkdir(parents=True, exist_ok=True)
    log_file = log_dir_path / LOG_FILE_NAME
    handler = RotatingFileHandler(
        log_file,
        maxBytes=LOG_FILE_MAX_BYTES,
        backupCount=LOG_FILE_BACKUP_COUNT,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(_formatter_for(handler, level))
    logger.addHandler(handler)
    _file_handler = handler
    logger.info("Writing logs to %s at %s", log_file, logging.getLevelName(level))


def _initialize_logger() -> None:
    """
    (Re)build the console logging setup.

    Drops any attached handlers, stops propagation to the root logger and
    takes the starting level from LOG_LEVEL_ENV_VAR (INFO when unset or invalid).
    """
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = RichHandler(
        rich_tracebacks=True,
        show_path=False,
        markup=False,
        log_time_format=LOG_DATE_FORMAT,
    )
    logger.addHandler(console)

    requested = os.environ.get(LOG_LEVEL_ENV_VAR, "INFO")
    level = _level_from_name(requested)
    invalid = level is None
    if invalid:
        level = logging.INFO
    logger.setLevel(level)
    console.setLevel(level)
    console.setFormatter(_formatter_for(console, level))
    if invalid:
        logger.warning("Invalid %s=%r; using INFO", LOG_LEVEL_ENV_VAR, requested)


_initialize_logger()
