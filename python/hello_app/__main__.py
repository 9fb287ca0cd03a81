"""CLI entrypoint for running the hello service."""

from __future__ import annotations

import sys

import uvicorn

from .config import HelloSettings
from .errors import HelloError
from .logger import configure_root_logger, get_logger
from .server import create_app
from .storage import StatsStore
from .tracing import init_tracing

logger = get_logger(__name__)


def main() -> None:
    configure_root_logger()
    try:
        settings = HelloSettings.from_env()
        logger.info("Starting %s %s", settings.service_name, settings.service_version)
        logger.debug("Settings: %s", settings.to_dict())

        store = StatsStore(settings.database_url)
        store.create_schema()

        provider = init_tracing(settings)
        store.instrument(provider)
    except HelloError as exc:
        logger.critical("Startup failed: %s", exc)
        sys.exit(1)

    app = create_app(settings, store=store, tracer_provider=provider)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level="info")


if __name__ == "__main__":
    main()
