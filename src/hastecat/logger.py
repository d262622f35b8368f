"""
Logger module for hastecat

Provides a centralized logging utility compatible with Python's logging module.
"""

import logging
import os
import sys
from typing import Optional


LOG_LEVEL_ENV = 'HASTECAT_LOG_LEVEL'


# ANSI color codes for different log levels
class LogColors:
    """ANSI color codes for terminal output"""
    RESET = '\033[0m'
    DEBUG = '\033[36m'      # Cyan
    INFO = '\033[32m'       # Green
    WARNING = '\033[33m'    # Yellow
    ERROR = '\033[31m'      # Red
    CRITICAL = '\033[35m'   # Magenta


class ColoredFormatter(logging.Formatter):
    """Formatter that adds color to log level names"""

    COLORS = {
        logging.DEBUG: LogColors.DEBUG,
        logging.INFO: LogColors.INFO,
        logging.WARNING: LogColors.WARNING,
        logging.ERROR: LogColors.ERROR,
        logging.CRITICAL: LogColors.CRITICAL,
    }

    def format(self, record):
        # Color a copy so other handlers see the plain level name
        if hasattr(sys.stderr, 'isatty') and sys.stderr.isatty() and record.levelno in self.COLORS:
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{self.COLORS[record.levelno]}{record.levelname}{LogColors.RESET}"
        return super().format(record)


def resolve_level(level: Optional[str] = None) -> int:
    """
    Translate a level name into a logging level number.

    Falls back to the HASTECAT_LOG_LEVEL env var, then INFO. Unknown names
    resolve to INFO.
    """
    if level is None:
        level = os.environ.get(LOG_LEVEL_ENV, 'INFO')
    level = level.upper()
    if level == 'WARN':
        level = 'WARNING'
    value = getattr(logging, level, logging.INFO)
    return value if isinstance(value, int) else logging.INFO


def create_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """
    Create a logger instance with the specified log level.

    Args:
        name: Logger name (e.g., "Hastecat.Server")
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Falls back to HASTECAT_LOG_LEVEL env var, then INFO.

    Returns:
        Configured logger instance

    Example:
        >>> logger = create_logger("Hastecat.Server", level="INFO")
        >>> logger.info("listening for incoming connections...")
    """
    numeric_level = resolve_level(level)

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)

    # Avoid duplicate handlers if logger already configured. The handler is
    # left at NOTSET so the logger level alone decides what gets through.
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = ColoredFormatter(
            fmt='%(asctime)s %(name)s %(levelname)s %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    # Prevent propagation to root logger to avoid duplicate logs
    logger.propagate = False

    return logger
