"""Logging configuration for photo-clutter-cleaner."""

import logging
import logging.handlers
import sys
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "clutter_cleaner"

CONSOLE_FORMAT = "%(levelname)s: %(message)s"
# Fetches run on worker threads; show which one when debugging
VERBOSE_CONSOLE_FORMAT = "%(levelname)s [%(threadName)s]: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Third-party loggers that flood DEBUG output during Drive scans
NOISY_LOGGERS = ("googleapiclient.discovery_cache", "urllib3", "PIL")


def setup_logger(
    name: str = PACKAGE_LOGGER,
    level: int = logging.INFO,
    log_file: Optional[Path] = None,
) -> logging.Logger:
    """
    Configure the package logger once for the whole process.

    Modules log through ``logging.getLogger(__name__)`` and propagate here.
    At DEBUG the console lines carry the thread name. A log file, when given,
    always receives DEBUG records and rotates at 5 MB.

    Args:
        name: Logger name
        level: Console logging level (default: INFO)
        log_file: Optional file path for log output

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()

    console_format = VERBOSE_CONSOLE_FORMAT if level <= logging.DEBUG else CONSOLE_FORMAT
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(console_format, DATE_FORMAT))
    logger.addHandler(console_handler)

    logger_level = level
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
            encoding="utf-8",
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)
        logger_level = logging.DEBUG

    logger.setLevel(logger_level)

    for noisy in NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)

    return logger
