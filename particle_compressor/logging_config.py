"""
Logging configuration for command-line use.

Library modules only create ``logging.getLogger(__name__)`` loggers; this module
attaches handlers to the ``particle_compressor`` namespace.

Log records go to stderr. stdout is left to the command results (particle counts,
``[info]`` summaries) so those can be piped or captured on their own.
"""
import logging
import sys
from typing import Optional

PACKAGE_LOGGER = "particle_compressor"

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"
CONSOLE_DATEFMT = "%H:%M:%S"
# Watch runs last for hours or days: keep the date in the file.
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> logging.Logger:
    """
    Route the package's log records to stderr and, optionally, a file.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Threshold for the package logger and its handlers.
        log_file: Append records to this file as well (created if missing).
    """
    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=CONSOLE_DATEFMT))
    logger.addHandler(console)

    if log_file:
        to_file = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        to_file.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=FILE_DATEFMT))
        logger.addHandler(to_file)

    for handler in logger.handlers:
        handler.setLevel(level)

    logger.debug("Logging to stderr%s", f" and {log_file}" if log_file else "")
    return logger
