"""
Centralized logging configuration for dev-installers.

Progress goes to stdout, warnings and errors go to stderr, and every line
carries a severity tag ([INFO], [OK], [WARN], [ERROR], [DEBUG]) or the
"==>" marker for pipeline steps.
"""

import logging
import sys
from pathlib import Path
from typing import Optional


LOGGER_NAME = "dev_installers"

# Global logger instance
_logger: Optional[logging.Logger] = None


class _BelowWarningFilter(logging.Filter):
    """Pass only records below WARNING (those belong on stdout)."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno < logging.WARNING


def setup_logging(
    level: str = "INFO",
    log_file: Optional[str] = None,
    verbose: bool = False,
    quiet: bool = False,
    propagate: bool = False,
) -> logging.Logger:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional file path for log output
        verbose: Enable verbose (DEBUG) output
        quiet: Suppress progress output (warnings and errors still shown)
        propagate: Allow log propagation (useful for testing)

    Returns:
        Configured logger instance
    """
    global _logger

    if verbose:
        effective_level = "DEBUG"
    elif quiet:
        effective_level = "WARNING"
    else:
        effective_level = level.upper()

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(getattr(logging, effective_level))
    logger.handlers.clear()

    # Progress on stdout
    if not quiet:
        out_handler = logging.StreamHandler(sys.stdout)
        out_handler.setLevel(getattr(logging, effective_level))
        out_handler.addFilter(_BelowWarningFilter())
        out_handler.setFormatter(ColoredFormatter(use_colors=sys.stdout.isatty()))
        logger.addHandler(out_handler)

    # Warnings and errors on stderr
    err_handler = logging.StreamHandler(sys.stderr)
    err_handler.setLevel(logging.WARNING)
    err_handler.setFormatter(ColoredFormatter(use_colors=sys.stderr.isatty()))
    logger.addHandler(err_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(logging.DEBUG)
        file_formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        )
        file_handler.setFormatter(file_formatter)
        logger.addHandler(file_handler)

    logger.propagate = propagate

    _logger = logger
    return logger


def get_logger() -> logging.Logger:
    """
    Get the configured logger instance.

    If logging hasn't been set up, returns the package logger untouched so
    that library use (and pytest's caplog) sees records through propagation.
    """
    global _logger
    if _logger is None:
        return logging.getLogger(LOGGER_NAME)
    return _logger


class ColoredFormatter(logging.Formatter):
    """
    Formatter that prefixes each record with a severity tag.

    Records logged with ``extra={"tag": "ok"}`` render as [OK] and records
    logged with ``extra={"tag": "step"}`` render with the "==>" marker.
    """

    COLORS = {
        'DEBUG': '\033[0;34m',    # Blue
        'INFO': '\033[0;36m',     # Cyan
        'OK': '\033[0;32m',       # Green
        'STEP': '\033[1m',        # Bold
        'WARNING': '\033[0;33m',  # Yellow
        'ERROR': '\033[0;31m',    # Red
        'CRITICAL': '\033[1;31m', # Bold Red
    }
    RESET = '\033[0m'

    TAGS = {
        'DEBUG': '[DEBUG]',
        'INFO': '[INFO]',
        'OK': '[OK]',
        'STEP': '==>',
        'WARNING': '[WARN]',
        'ERROR': '[ERROR]',
        'CRITICAL': '[ERROR]',
    }

    def __init__(self, fmt: str = "%(tag_text)s %(message)s", use_colors: bool = True):
        super().__init__(fmt)
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with its tag."""
        key = record.levelname
        custom = getattr(record, "tag", None)
        if custom == "ok":
            key = "OK"
        elif custom == "step":
            key = "STEP"

        tag = self.TAGS.get(key, f"[{record.levelname}]")
        if self.use_colors:
            color = self.COLORS.get(key, '')
            if key == "STEP":
                # Bold covers the whole step line
                record.tag_text = f"{color}{tag}"
                return super().format(record) + self.RESET
            record.tag_text = f"{color}{tag}{self.RESET}"
        else:
            record.tag_text = tag

        return super().format(record)


def step(msg: str) -> None:
    """Announce a pipeline step ("==> msg")."""
    get_logger().info(msg, extra={"tag": "step"})


def success(msg: str) -> None:
    """Report a completed action ("[OK] msg")."""
    get_logger().info(msg, extra={"tag": "ok"})
