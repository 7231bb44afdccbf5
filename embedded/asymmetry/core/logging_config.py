"""Logging configuration using loguru."""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from loguru import logger

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{line} | {message}"


def setup_logging(level: str = "INFO", log_file: Optional[Path] = None) -> Optional[int]:
    """Route logs to stdout and, optionally, a rotating file.

    Returns the file sink id so callers can detach it on shutdown.
    """
    logger.remove()
    logger.add(lambda msg: print(msg, end=""), level=level, format=LOG_FORMAT)
    if log_file is None:
        return None
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    return logger.add(
        log_file,
        level=level,
        format=LOG_FORMAT,
        rotation="5 MB",
        retention="7 days",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )
