"""
Logging for the booking engine.

Each module creates its logger at import time with
``logger = setup_logging(name=__name__, ...)``. Modules naming the same log
file write through one shared rotating handler, so the file rotates once.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "[%(filename)s:%(lineno)d] - %(message)s"
)
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

# Libraries that log every HTTP round-trip to the store at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "apscheduler.executors.default")

_formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
_file_handlers: dict[Path, RotatingFileHandler] = {}


def _shared_file_handler(path: Path) -> RotatingFileHandler:
    handler = _file_handlers.get(path)
    if handler is None:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            path,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        handler.setFormatter(_formatter)
        _file_handlers[path] = handler
    return handler


def setup_logging(
    name: str,
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    log_dir: str = "logs",
) -> logging.Logger:
    """
    Return the logger for ``name``, attaching handlers on first use.

    Args:
        name: Logger name (typically __name__)
        log_level: Logging level name; unknown names fall back to INFO
        log_file: Optional file name under ``log_dir``
        log_dir: Directory for log files

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = logging.getLevelName(log_level.upper())
    logger.setLevel(level if isinstance(level, int) else logging.INFO)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(_formatter)
    logger.addHandler(console_handler)

    if log_file:
        logger.addHandler(_shared_file_handler(Path(log_dir) / log_file))

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
