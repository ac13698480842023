#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Logging configuration for Playlist Stats.

Provides structured JSON logging, a keyword-friendly logger wrapper and
the setup function used by the server entry point.
"""

import json
import logging
import logging.handlers
import os
import sys
from typing import Any, Dict, Optional

DEFAULT_LOG_FILE = "playlist_stats_backend.log"

# Attributes every LogRecord carries; anything else was passed via ``extra``
_RESERVED_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging.

    Each record becomes a single JSON object. Context passed through
    ``StructuredLogger`` keywords lands at the top level of that object,
    next to (never in place of) the core fields.
    """

    def format(self, record):
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "name": record.name,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        extra_data = getattr(record, "data", None)
        if isinstance(extra_data, dict):
            # Context never overrides the core record fields
            for key, value in extra_data.items():
                log_data.setdefault(key, value)

        # Plain ``extra={...}`` keys from standard loggers
        for key, value in record.__dict__.items():
            if key not in _RESERVED_RECORD_ATTRS and key != "data" and key not in log_data:
                log_data[key] = value

        return json.dumps(log_data, default=str)


class StructuredLogger:
    """Logger that supports structured logging with additional context data.

    Usage::

        logger = StructuredLogger(__name__)
        logger.info("Fetched page", playlist_id=pid, page=3)
    """

    def __init__(self, name: str, extra: Optional[Dict[str, Any]] = None):
        self.logger = logging.getLogger(name)
        self.extra = extra or {}

    def bind(self, **kwargs) -> "StructuredLogger":
        """Return a logger that adds ``kwargs`` to every record it emits."""
        bound = StructuredLogger(self.logger.name, {**self.extra, **kwargs})
        return bound

    def _log(self, level: int, message: str, exc_info=None, **kwargs):
        if not self.logger.isEnabledFor(level):
            return
        extra_data = {**self.extra, **kwargs}
        # stacklevel=3 reports the caller of debug()/info()/..., not this wrapper
        self.logger.log(level, message, exc_info=exc_info, extra={"data": extra_data}, stacklevel=3)

    def debug(self, message: str, **kwargs):
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs):
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info=False, **kwargs):
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def critical(self, message: str, exc_info=False, **kwargs):
        self._log(logging.CRITICAL, message, exc_info=exc_info, **kwargs)


def _level_from_env(var_name: str, default: int) -> int:
    """Resolve a level name such as ``"DEBUG"`` from the environment."""
    level_name = os.environ.get(var_name, "").strip().upper()
    level = logging.getLevelName(level_name) if level_name else default
    return level if isinstance(level, int) else default


def setup_logging(log_level_console: Optional[int] = None,
                  log_level_file: Optional[int] = None,
                  structured: Optional[bool] = None,
                  log_file: Optional[str] = None):
    """Configure logging to console and a rotating file.

    Arguments left as None are read from ``LOG_LEVEL_CONSOLE``,
    ``LOG_LEVEL_FILE``, ``LOG_STRUCTURED`` and ``LOG_FILE``. An empty
    ``LOG_FILE`` disables the file handler.
    """
    if log_level_console is None:
        log_level_console = _level_from_env("LOG_LEVEL_CONSOLE", logging.INFO)
    if log_level_file is None:
        log_level_file = _level_from_env("LOG_LEVEL_FILE", logging.DEBUG)
    if structured is None:
        structured = os.environ.get("LOG_STRUCTURED", "true").lower() in ("true", "1", "yes")
    if log_file is None:
        log_file = os.environ.get("LOG_FILE", DEFAULT_LOG_FILE)

    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    formatter = JSONFormatter() if structured else logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    levels = [log_level_console]
    if log_file:
        try:
            file_handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
            file_handler.setFormatter(formatter)
            file_handler.setLevel(log_level_file)
            root_logger.addHandler(file_handler)
            levels.append(log_level_file)
        except OSError as e:
            print(f"Warning: Could not create log file '{log_file}': {e}", file=sys.stderr)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.setLevel(log_level_console)
    root_logger.addHandler(console_handler)

    root_logger.setLevel(min(levels))

    # googleapiclient logs every discovery/request at INFO
    logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

    logging.getLogger(__name__).info(
        "Logging setup complete.",
        extra={"data": {"structured": structured, "log_file": log_file or None}}
    )
