from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor

import pytest
from sqlalchemy import create_engine

from hello_app.errors import StorageError
from hello_app.models import Stat
from hello_app.storage import StatsStore


def test_first_increment_initialises_to_one(store):
    assert store.get_and_increment("world") == 1


def test_kth_increment_returns_k(store):
    counts = [store.get_and_increment("world") for _ in range(5)]

    assert counts == [1, 2, 3, 4, 5]
    assert store.get_count("world") == 5


def test_names_are_independent(store):
    store.get_and_increment("alice")
    store.get_and_increment("alice")
    store.get_and_increment("bob")

    assert store.get_count("alice") == 2
    assert store.get_count("bob") == 1
    assert store.get_count("carol") == 0


def test_concurrent_increments_do_not_lose_updates(store):
    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: store.get_and_increment("busy"), range(40)))

    assert sorted(results) == list(range(1, 41))
    assert store.get_count("busy") == 40


def test_file_sqlite_uses_pooled_engine(tmp_path):
    store = StatsStore(f"sqlite:///{tmp_path / 'stats.db'}")
    store.create_schema()

    assert store.get_and_increment("world") == 1
    assert store.get_and_increment("world") == 2
    store.dispose()


class _LegacyDialectStore(StatsStore):
    """Forces the select-then-write path used for dialects without upsert."""

    def get_and_increment(self, name):
        with self._transaction() as session:
            count = self._select_then_write(session, name)
        return count


def test_select_then_write_path(store):
    legacy = _LegacyDialectStore(engine=store.engine)

    assert legacy.get_and_increment("world") == 1
    assert legacy.get_and_increment("world") == 2
    assert store.get_and_increment("world") == 3


def test_missing_table_raises_storage_error():
    store = StatsStore("sqlite://")

    with pytest.raises(StorageError):
        store.get_and_increment("world")


def test_failed_transaction_rolls_back(store):
    store.get_and_increment("world")

    with pytest.raises(StorageError):
        with store._transaction() as session:
            session.add(Stat(name="other", count=1))
            session.add(Stat(name="world", count=1))

    assert store.get_count("other") == 0
    assert store.get_count("world") == 1


def test_store_requires_url_or_engine():
    with pytest.raises(StorageError):
        StatsStore()


def test_invalid_url_raises_storage_error():
    with pytest.raises(StorageError):
        StatsStore("not a url")


def test_create_schema_is_idempotent():
    store = StatsStore(engine=create_engine("sqlite://"))
    store.create_schema()
    store.create_schema()


def test_instrument_emits_sql_spans(store, tracer_provider, span_exporter):
    from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor

    store.instrument(tracer_provider)
    try:
        store.get_and_increment("world")
    finally:
        SQLAlchemyInstrumentor().uninstrument()

    assert span_exporter.get_finished_spans()


class _RefusingInstrumentor:
    def instrument(self, **kwargs):
        return None


def test_instrument_raises_when_engine_is_refused(store, tracer_provider, monkeypatch):
    monkeypatch.setattr(
        "hello_app.storage.SQLAlchemyInstrumentor", _RefusingInstrumentor
    )

    with pytest.raises(StorageError):
        store.instrument(tracer_provider)
