"""Centralized logger configuration for the hello service.

Every record carries the active OpenTelemetry trace and span ids so log
lines can be joined with the exported spans.
"""

import logging
import os
import sys
from typing import Optional

from opentelemetry import trace

# Track if root logger has been configured
_root_logger_configured = False

LOG_FORMAT = (
    "%(asctime)s.%(msecs)03d | %(levelname)-8s | %(name)s | "
    "trace=%(trace_id)s span=%(span_id)s | %(message)s"
)


class TraceContextFilter(logging.Filter):
    """Attach ``trace_id`` and ``span_id`` of the current span to records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = trace.get_current_span().get_span_context()
        record.trace_id = format(context.trace_id, "032x")
        record.span_id = format(context.span_id, "016x")
        return True


def configure_root_logger(level: Optional[str] = None) -> None:
    """Configure the root logger with standard formatting.

    This should be called once at application startup. Subsequent calls
    are idempotent. Uvicorn loggers are pointed at the same handler.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               If None, reads from HELLO_APP_LOG_LEVEL env var or defaults to INFO.
    """
    global _root_logger_configured

    if _root_logger_configured:
        return

    if level is None:
        level = os.environ.get("HELLO_APP_LOG_LEVEL", "INFO")
    level = level.upper()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(formatter)
    handler.addFilter(TraceContextFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(logger_name)
        uvicorn_logger.handlers.clear()
        uvicorn_logger.addHandler(handler)
        uvicorn_logger.setLevel(level)
        uvicorn_logger.propagate = False

    _root_logger_configured = True


def get_logger(name: str, level: Optional[str] = None) -> logging.Logger:
    """Return a configured logger with standardized formatting.

    The root logger is configured automatically on first call.

    Args:
        name: Logger name (typically __name__ of the calling module)
        level: Optional log level override. If None, uses root logger level.

    Returns:
        Configured logger instance
    """
    if not _root_logger_configured:
        configure_root_logger()

    logger = logging.getLogger(name)

    if level is not None:
        logger.setLevel(level.upper())

    return logger
