"""Environment-driven configuration for the hello service."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any

from .errors import HelloConfigError
from .logger import get_logger

logger = get_logger(__name__)


def _read_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _read_int(value: str | None, default: int) -> int:
    if value is None:
        return default
    try:
        parsed = int(value)
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def _read_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    try:
        parsed = float(value)
        return parsed if parsed > 0 else default
    except ValueError:
        return default


def parse_headers(raw: str | None) -> dict[str, str]:
    """Parse ``key=value`` pairs separated by commas into a header map.

    Keys are lower-cased because gRPC metadata keys must be lower case.
    Only the first ``=`` separates key from value, so values may contain
    ``=`` (base64 tokens). Entries without ``=`` or with an empty key are
    skipped.

    Args:
        raw: Raw header string, e.g. ``"Authorization=Bearer abc,x-team=obs"``

    Returns:
        Header map (empty when ``raw`` is empty or None)
    """
    headers: dict[str, str] = {}
    if not raw:
        return headers

    for item in raw.split(","):
        item = item.strip()
        if not item:
            continue
        key, sep, value = item.partition("=")
        key = key.strip().lower()
        if not sep or not key:
            logger.warning("Ignoring malformed exporter header entry %r", item)
            continue
        headers[key] = value.strip()
    return headers


@dataclass(frozen=True)
class HelloSettings:
    """Configuration container."""

    exporter_endpoint: str
    exporter_headers: dict[str, str] = field(default_factory=dict)
    exporter_insecure: bool = False
    exporter_timeout: float = 5.0
    host: str = "0.0.0.0"
    port: int = 9000
    database_url: str = "sqlite://"
    service_name: str = "hello-app"
    service_version: str = "v1.0.0"

    @classmethod
    def from_env(cls) -> "HelloSettings":
        """Build settings using environment variables.

        Raises:
            HelloConfigError: If EXPORTER_ENDPOINT is not set.
        """
        endpoint = os.environ.get("EXPORTER_ENDPOINT", "").strip()
        if not endpoint:
            raise HelloConfigError(
                "EXPORTER_ENDPOINT is required. "
                "Set it to the OTLP collector address (e.g., otel-collector:4317)."
            )

        return cls(
            exporter_endpoint=endpoint,
            exporter_headers=parse_headers(os.environ.get("EXPORTER_HEADERS")),
            exporter_insecure=_read_bool(os.environ.get("EXPORTER_INSECURE"), False),
            exporter_timeout=_read_float(os.environ.get("EXPORTER_TIMEOUT"), 5.0),
            host=os.environ.get("HELLO_APP_HOST", "0.0.0.0"),
            port=_read_int(os.environ.get("HELLO_APP_PORT"), 9000),
            database_url=os.environ.get("DATABASE_URL", "").strip() or "sqlite://",
            service_name=os.environ.get("HELLO_APP_SERVICE_NAME", "hello-app"),
            service_version=os.environ.get("HELLO_APP_SERVICE_VERSION", "v1.0.0"),
        )

    def to_dict(self) -> dict[str, Any]:
        """Return a dict suitable for logging/debugging (header values redacted)."""

        return {
            "exporter_endpoint": self.exporter_endpoint,
            "exporter_header_keys": sorted(self.exporter_headers),
            "exporter_insecure": self.exporter_insecure,
            "exporter_timeout": self.exporter_timeout,
            "host": self.host,
            "port": self.port,
            "database_url": self.database_url,
            "service_name": self.service_name,
            "service_version": self.service_version,
        }
