"""
Logging utilities for the Smart Bill engine and CLI.

Every module logs through a child of the ``smart_bill`` logger. The CLI
decides where records go: stdout for the table view, stderr when the bill is
printed as JSON so the document on stdout stays machine-readable.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, TextIO

ROOT_LOGGER_NAME = "smart_bill"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None,
    stream: Optional[TextIO] = None,
    name: str = ROOT_LOGGER_NAME,
) -> logging.Logger:
    """
    Set up logging for the billing engine and CLI.

    Args:
        level: Logging level name; unknown names fall back to INFO
        log_file: Path to a log file, parent directories are created
        format_string: Custom format string for log messages
        stream: Console stream (defaults to stdout)
        name: Logger to configure (defaults to the package logger)

    Returns:
        The configured logger
    """
    level_num = getattr(logging, (level or "INFO").upper(), logging.INFO)
    formatter = logging.Formatter(format_string or DEFAULT_FORMAT)

    logger = logging.getLogger(name)
    logger.setLevel(level_num)

    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    handlers = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level_num)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Child of the package logger for ``name`` (usually ``__name__``)."""
    if name == ROOT_LOGGER_NAME or name.startswith(f"{ROOT_LOGGER_NAME}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
