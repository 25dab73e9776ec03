"""Logging setup for the swallows command and library users."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from swallows.constants import DEFAULT_LOG_FORMAT, NOISY_LOGGERS


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    quiet_loggers: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Route log records to stdout (and optionally a file).

    Crawl progress is logged at INFO by the ``swallows`` loggers; per-request
    chatter from the HTTP stack is held at WARNING unless DEBUG is requested.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path of a log file, appended to; parent directories are created
        format_string: Optional custom format string
        quiet_loggers: Third-party logger names capped at WARNING

    Returns:
        The ``swallows`` package logger
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))

    logging.basicConfig(
        level=numeric_level,
        format=format_string or DEFAULT_LOG_FORMAT,
        handlers=handlers,
        force=True,
    )

    if numeric_level > logging.DEBUG:
        for name in quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    package_logger = logging.getLogger("swallows")
    package_logger.setLevel(numeric_level)
    return package_logger
