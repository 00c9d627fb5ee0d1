"""Logging configuration for wlm-apex."""

import logging
import sys

# Default log format
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Namespace all package loggers live under
ROOT_LOGGER = "wlm_apex"

# Module-level cache for loggers
_loggers: dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """Get a package logger.

    Loggers under the wlm_apex namespace carry no handler of their own;
    records propagate to the namespace logger set up by configure_logging().
    Loggers are cached to avoid repeated lookups.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger instance
    """
    if name in _loggers:
        return _loggers[name]

    logger = logging.getLogger(name)
    _loggers[name] = logger
    return logger


def configure_logging(level: int = logging.INFO, format_str: str | None = None):
    """Configure logging for all wlm_apex modules.

    Replaces the namespace handler on every call so the current stderr
    stream is used.

    Args:
        level: Logging level for wlm_apex loggers
        format_str: Custom format string (optional)
    """
    fmt = format_str or LOG_FORMAT

    apex_logger = logging.getLogger(ROOT_LOGGER)
    apex_logger.setLevel(level)

    for handler in list(apex_logger.handlers):
        apex_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt))
    apex_logger.addHandler(handler)
