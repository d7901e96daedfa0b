"""
Logging configuration for InstantSolve.

Uses loguru; call setup_logging() once from an entry point (CLI or API).
Records emitted through mode_logger() carry the mode they were produced in,
which both sinks print next to the level. Set DISABLE_LOGGING=1 to leave
loguru's handlers untouched (tests).
"""

import os
import sys
from pathlib import Path

from loguru import logger

from instantsolve.config import get_settings
from instantsolve.modes import Mode

NO_MODE = "-"

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[mode]: <12}</magenta> | <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[mode]} | {name}:{line} - {message}"


def mode_logger(mode: Mode | str):
    """Logger whose records are tagged with ``mode``."""
    return logger.bind(mode=mode.value if isinstance(mode, Mode) else mode)


def setup_logging(level: str | None = None, log_file: Path | str | None = None) -> None:
    """
    Route loguru to stderr and, if configured, a rotating file.

    Args:
        level: Log level; defaults to settings.log_level
        log_file: Log file path; defaults to settings.log_file
    """
    if os.environ.get("DISABLE_LOGGING") == "1":
        return

    settings = get_settings()
    level = (level or settings.log_level).upper()
    log_file = log_file or settings.log_file

    logger.remove()
    logger.configure(extra={"mode": NO_MODE})
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT, colorize=True)

    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level=level, format=FILE_FORMAT, rotation="10 MB", retention="1 week")

    logger.debug(f"Logging configured: level={level}")
