"""Logging configuration for devctl.

Owns the `devctl` logger configuration (handlers, formatters).
Other modules get their own child logger via:
    _logger = logging.getLogger(f"{APP_NAME}.<module>")

and emit structured events through log_event(). Child loggers propagate
to the `devctl` logger, which does not propagate to the root logger.
"""

from __future__ import annotations

__all__ = [
    "configure_logging",
    "get_system_log_path",
    "log_event",
]

import logging
from pathlib import Path

from platformdirs import user_log_dir

from devctl.constants import APP_NAME, SYSTEM_LOG_FILENAME
from devctl.models import SystemEvent
from devctl.utils.iso_formatter import ISO8601Formatter

_logger = logging.getLogger(APP_NAME)
_logger.setLevel(logging.INFO)
_logger.propagate = False

# Track if file logging has been configured
_file_handler_configured: bool = False


class _ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# stderr-only until configure_logging() runs
if not _logger.handlers:
    _stderr_handler = logging.StreamHandler()
    _stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(_stderr_handler)


def get_system_log_path() -> Path:
    """Get the default path of the persistent system log.

    Returns:
        Path: <platform log dir>/devctl/system.jsonl
    """
    return Path(user_log_dir(APP_NAME)) / SYSTEM_LOG_FILENAME


def configure_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure devctl logging.

    Sets up:
    - stderr handler: INFO+ (DEBUG+ when verbose) for operator visibility
    - file handler: WARNING+ only, JSONL, when a log file can be opened

    Args:
        verbose: Show DEBUG records (e.g., port collisions) on stderr.
        log_file: Path of the JSONL log. Defaults to get_system_log_path().
    """
    global _file_handler_configured

    level = logging.DEBUG if verbose else logging.INFO
    _logger.setLevel(level)

    if _file_handler_configured:
        for handler in _logger.handlers:
            if not isinstance(handler, logging.FileHandler):
                handler.setLevel(level)
        return

    # Close and clear any existing handlers to avoid resource leaks
    for handler in _logger.handlers:
        handler.close()
    _logger.handlers.clear()

    stderr_handler = logging.StreamHandler()
    stderr_handler.setLevel(level)
    stderr_handler.setFormatter(_ConsoleFormatter())
    _logger.addHandler(stderr_handler)

    log_path = log_file or get_system_log_path()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass  # stderr will still work

    try:
        file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
        file_handler.setLevel(logging.WARNING)
        file_handler.setFormatter(ISO8601Formatter())
        _logger.addHandler(file_handler)
        _file_handler_configured = True
    except OSError as e:
        log_event(
            logging.WARNING,
            SystemEvent(
                event="file_logging_failed",
                message=f"Failed to configure file logging: {e}",
                error_type=type(e).__name__,
                error_message=str(e),
            ),
        )


def log_event(level: int, event: SystemEvent, logger: logging.Logger | None = None) -> None:
    """Log a SystemEvent at the specified level.

    Serializes the event to a dict (excluding None values) and logs it.
    The ISO8601Formatter adds the timestamp during serialization.

    Args:
        level: Logging level (e.g., logging.INFO, logging.WARNING).
        event: The event to log.
        logger: Child logger to log through. Defaults to the `devctl` logger.
    """
    (logger or _logger).log(level, event.model_dump(exclude_none=True))
