"""Hello service: greets callers by name and counts visits per name."""

from .config import HelloSettings, parse_headers
from .errors import HelloConfigError, HelloError, InvalidNameError, StorageError
from .server import create_app, validate_name
from .storage import StatsStore
from .tracing import init_tracing

__all__ = [
    "HelloConfigError",
    "HelloError",
    "HelloSettings",
    "InvalidNameError",
    "StatsStore",
    "StorageError",
    "create_app",
    "init_tracing",
    "parse_headers",
    "validate_name",
]
