from __future__ import annotations

import sys
from pathlib import Path

import pytest

PACKAGE_ROOT = Path(__file__).resolve().parents[1] / "python"
if str(PACKAGE_ROOT) not in sys.path:
    sys.path.insert(0, str(PACKAGE_ROOT))

from fastapi.testclient import TestClient
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import SimpleSpanProcessor
from opentelemetry.sdk.trace.export.in_memory_span_exporter import InMemorySpanExporter

from hello_app.config import HelloSettings
from hello_app.server import create_app
from hello_app.storage import StatsStore


@pytest.fixture
def settings() -> HelloSettings:
    return HelloSettings(exporter_endpoint="localhost:4317", exporter_insecure=True)


@pytest.fixture
def store() -> StatsStore:
    store = StatsStore("sqlite://")
    store.create_schema()
    yield store
    store.dispose()


@pytest.fixture
def span_exporter() -> InMemorySpanExporter:
    return InMemorySpanExporter()


@pytest.fixture
def tracer_provider(span_exporter) -> TracerProvider:
    provider = TracerProvider()
    provider.add_span_processor(SimpleSpanProcessor(span_exporter))
    yield provider
    provider.shutdown()


@pytest.fixture
def client(settings, store, tracer_provider) -> TestClient:
    app = create_app(settings, store=store, tracer_provider=tracer_provider)
    return TestClient(app)
