"""FastAPI application for the hello service."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI, HTTPException, Request, status
from opentelemetry import trace
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from .config import HelloSettings
from .errors import InvalidNameError, StorageError
from .logger import get_logger
from .schemas import HelloResponse
from .storage import StatsStore
from .tracing import TRACER_NAME

logger = get_logger(__name__)

# Printable ASCII is 0x20 (space) up to, not including, 0x7F (DEL).
MIN_PRINTABLE = 0x20
MAX_ASCII = 0x7F


def validate_name(name: str) -> str:
    """Return ``name`` unchanged if it is non-empty printable ASCII.

    Raises:
        InvalidNameError: If the name is empty, holds a control character
            (< 0x20) or a code point >= 0x7F.
    """
    if not name or any(
        not MIN_PRINTABLE <= ord(char) < MAX_ASCII for char in name
    ):
        raise InvalidNameError(name)
    return name


def create_app(
    settings: HelloSettings,
    store: StatsStore | None = None,
    tracer_provider: trace.TracerProvider | None = None,
) -> FastAPI:
    """Create the hello FastAPI app.

    Args:
        settings: Service settings
        store: Stats store. Defaults to a fresh store on ``settings.database_url``
               with the schema created.
        tracer_provider: Provider for request and counter spans. Defaults to
                         the global provider.

    Returns:
        Configured FastAPI app instance
    """
    if store is None:
        store = StatsStore(settings.database_url)
        store.create_schema()
    if tracer_provider is None:
        tracer_provider = trace.get_tracer_provider()
    tracer = tracer_provider.get_tracer(TRACER_NAME)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        yield
        shutdown = getattr(tracer_provider, "shutdown", None)
        if shutdown is not None:
            shutdown()
        store.dispose()

    app = FastAPI(
        title="Hello App",
        version=settings.service_version,
        description="Greets callers by name and counts their visits.",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.store = store
    app.state.tracer = tracer

    @app.get("/healthz")
    def healthcheck() -> dict[str, Any]:
        return {
            "status": "ok",
            "service": settings.service_name,
            "version": settings.service_version,
        }

    @app.get("/hello/{name}", response_model=HelloResponse)
    def hello(name: str, request: Request) -> HelloResponse:
        """Greet ``name`` and return how many times it has been greeted."""
        logger.info("handling hello request (name=%r)", name)

        try:
            validate_name(name)
        except InvalidNameError as exc:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=str(exc),
            ) from exc

        state = request.app.state
        try:
            with state.tracer.start_as_current_span("update_request_count") as span:
                span.set_attribute("hello.name", name)
                count = state.store.get_and_increment(name)
                span.set_attribute("hello.count", count)
        except StorageError as exc:
            logger.error("Failed to update request count for %r: %s", name, exc)
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Failed to update request count",
            ) from exc

        return HelloResponse.for_count(count)

    FastAPIInstrumentor.instrument_app(app, tracer_provider=tracer_provider)
    return app
