from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

MAX_LOG_BYTES = 10 * 1024 * 1024  # 10MB
LOG_BACKUPS = 5

_HANDLER_TAG = "_rio_handler"


def setup_logging(log_dir: Optional[Path] = None, level: str = "INFO") -> logging.Logger:
    """
    Configure the "rio" logger.

    Console output always; with log_dir, also a rotating rio.log (everything)
    and a rotating errors.log (failures only). Calling it again replaces the
    handlers it installed earlier instead of stacking new ones.

    Args:
        log_dir: Directory for log files (None = console only)
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL

    Returns:
        The configured "rio" logger
    """
    logger = logging.getLogger("rio")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, _HANDLER_TAG, False):
            logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(formatter)
    _add(logger, console_handler)

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_dir / "rio.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        _add(logger, file_handler)

        error_handler = RotatingFileHandler(
            log_dir / "errors.log",
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        _add(logger, error_handler)

        logger.debug(f"Log directory: {log_dir.absolute()}")

    return logger


def _add(logger: logging.Logger, handler: logging.Handler) -> None:
    setattr(handler, _HANDLER_TAG, True)
    logger.addHandler(handler)
