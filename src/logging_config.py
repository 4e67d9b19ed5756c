"""
Logging configuration for the allocation engine.

This module provides centralized logging setup: a console handler, an optional
rotating log file, and a namespaced logger factory used by every module.
"""

import functools
import logging
import logging.config
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional


LOGGER_NAMESPACE = "allocation_engine"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DETAILED_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - "
    "%(module)s.%(funcName)s:%(lineno)d - %(message)s"
)


def build_logging_config(
    log_level: str = "WARNING",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_console: bool = True
) -> Dict[str, Any]:
    """Build a ``logging.config.dictConfig`` mapping for the engine's loggers.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to a rotating log file (optional)
        log_format: Console format string (optional)
        enable_console: Whether to log to stderr

    Returns:
        Configuration dictionary
    """
    level = log_level.upper()
    handlers: Dict[str, Any] = {}

    if enable_console:
        handlers["console"] = {
            "class": "logging.StreamHandler",
            "level": level,
            "formatter": "standard",
            "stream": sys.stderr,
        }

    if log_file:
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": level,
            "formatter": "detailed",
            "filename": log_file,
            "maxBytes": 5 * 1024 * 1024,
            "backupCount": 3,
            "encoding": "utf8",
        }

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {"format": log_format or DEFAULT_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "detailed": {"format": DETAILED_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
        },
        "handlers": handlers,
        "loggers": {
            LOGGER_NAMESPACE: {
                "level": level,
                "handlers": list(handlers),
                "propagate": False,
            },
        },
    }


def setup_logging(
    log_level: str = "WARNING",
    log_file: Optional[str] = None,
    log_format: Optional[str] = None,
    enable_console: bool = True
) -> None:
    """Configure the ``allocation_engine`` logger hierarchy."""
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        build_logging_config(log_level, log_file, log_format, enable_console)
    )


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the engine namespace.

    Args:
        name: Logger name (typically __name__)
    """
    return logging.getLogger(f"{LOGGER_NAMESPACE}.{name}")


class LoggerMixin:
    """Mixin class to add a class-named logger."""

    @property
    def logger(self) -> logging.Logger:
        return get_logger(self.__class__.__name__)


def log_execution_time(func):
    """Decorator logging how long a computation took."""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        logger = get_logger(func.__module__)
        start = time.perf_counter()
        logger.debug(f"Starting {func.__qualname__}")
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.perf_counter() - start
            logger.error(f"{func.__qualname__} failed after {elapsed:.4f}s: {e}")
            raise
        elapsed = time.perf_counter() - start
        logger.info(f"Completed {func.__qualname__} in {elapsed:.4f}s")
        return result

    return wrapper


# Configure basic logging on module import
setup_logging()
