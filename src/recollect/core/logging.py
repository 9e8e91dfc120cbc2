"""
Logging configuration.

All loggers live under the "recollect" namespace. Library code only calls
get_logger(); applications (the CLI) call setup_logging() once.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "recollect"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Library default: silent unless the application configures logging
logging.getLogger(ROOT_LOGGER).addHandler(logging.NullHandler())


def setup_logging(
    level: int = logging.INFO,
    log_file: Path | None = None,
) -> logging.Logger:
    """Configure package logger with stderr and optional file output.

    Replaces handlers from earlier calls instead of stacking them.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    # stdout carries command output
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a child logger."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
