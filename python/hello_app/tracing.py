"""OpenTelemetry tracer provider setup for the hello service."""

from __future__ import annotations

import grpc
from opentelemetry import propagate, trace
from opentelemetry.baggage.propagation import W3CBaggagePropagator
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.propagators.composite import CompositePropagator
from opentelemetry.sdk.resources import SERVICE_NAME, SERVICE_VERSION, Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, SpanExporter
from opentelemetry.sdk.trace.sampling import ALWAYS_ON
from opentelemetry.trace.propagation.tracecontext import TraceContextTextMapPropagator

from .config import HelloSettings
from .errors import HelloConfigError
from .logger import get_logger

logger = get_logger(__name__)

TRACER_NAME = "io.opentelemetry.traces.hello"


def build_resource(settings: HelloSettings) -> Resource:
    """Describe this service on every exported span."""
    return Resource.create(
        {
            SERVICE_NAME: settings.service_name,
            SERVICE_VERSION: settings.service_version,
        }
    )


def build_exporter(settings: HelloSettings) -> OTLPSpanExporter:
    """Create the gRPC OTLP exporter pointed at the configured collector.

    The channel is TLS-encrypted unless ``exporter_insecure`` is set.
    Exporter headers travel as gRPC metadata on every export call.

    Raises:
        HelloConfigError: If the exporter cannot be constructed.
    """
    credentials = None if settings.exporter_insecure else grpc.ssl_channel_credentials()
    try:
        exporter = OTLPSpanExporter(
            endpoint=settings.exporter_endpoint,
            insecure=settings.exporter_insecure,
            credentials=credentials,
            headers=settings.exporter_headers or None,
            timeout=settings.exporter_timeout,
        )
    except Exception as exc:
        raise HelloConfigError(f"failed to create exporter: {exc}") from exc

    logger.info(
        "OTLP exporter targeting %s (tls=%s, headers=%s)",
        settings.exporter_endpoint,
        not settings.exporter_insecure,
        sorted(settings.exporter_headers),
    )
    return exporter


def init_tracing(
    settings: HelloSettings,
    exporter: SpanExporter | None = None,
    *,
    set_global: bool = True,
) -> TracerProvider:
    """Build the tracer provider and optionally install it process-wide.

    Every trace is sampled and finished spans are exported in batches.

    Args:
        settings: Service settings
        exporter: Span exporter to use. Defaults to ``build_exporter(settings)``.
        set_global: Install the provider and the baggage + trace-context
                    propagator as the process-wide defaults.

    Returns:
        The configured tracer provider
    """
    if exporter is None:
        exporter = build_exporter(settings)

    provider = TracerProvider(sampler=ALWAYS_ON, resource=build_resource(settings))
    provider.add_span_processor(BatchSpanProcessor(exporter))

    if set_global:
        trace.set_tracer_provider(provider)
        propagate.set_global_textmap(
            CompositePropagator(
                [W3CBaggagePropagator(), TraceContextTextMapPropagator()]
            )
        )
        logger.info("Global tracer provider installed for %s", settings.service_name)

    return provider
