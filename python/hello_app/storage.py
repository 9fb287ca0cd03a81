"""SQLAlchemy-backed visit counter storage."""

from __future__ import annotations

from contextlib import contextmanager, nullcontext
from threading import Lock
from typing import Callable, Generator

from opentelemetry import trace
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from sqlalchemy import create_engine, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.dml import Insert

from .errors import StorageError
from .logger import get_logger
from .models import Base, Stat

logger = get_logger(__name__)

# Dialects with INSERT ... ON CONFLICT DO UPDATE ... RETURNING
_UPSERT_INSERTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _is_memory_sqlite(database_url: str) -> bool:
    return database_url in {"sqlite://", "sqlite:///:memory:"}


def create_stats_engine(database_url: str) -> Engine:
    """Create an engine for the stats table.

    In-memory SQLite lives on a single connection shared by all threads,
    otherwise every pooled connection would see its own empty database.

    Args:
        database_url: SQLAlchemy database URL

    Returns:
        Configured engine
    """
    if _is_memory_sqlite(database_url):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(database_url, pool_pre_ping=True)


class StatsStore:
    """Per-name visit counters, one transaction per update."""

    def __init__(
        self,
        database_url: str | None = None,
        *,
        engine: Engine | None = None,
    ):
        """Initialize the store.

        Args:
            database_url: Database URL, used when no engine is given.
            engine: Pre-built engine (takes precedence over database_url).

        Raises:
            StorageError: If the engine cannot be created.
        """
        if engine is None:
            if not database_url:
                raise StorageError("StatsStore requires a database_url or an engine")
            try:
                engine = create_stats_engine(database_url)
            except (SQLAlchemyError, ValueError) as exc:
                raise StorageError(f"Failed to open database: {exc}") from exc

        self.engine = engine
        self._session_factory = sessionmaker(
            autocommit=False, autoflush=False, bind=engine
        )
        # Transactions on a single shared connection must not interleave.
        self._shared_connection_lock = (
            Lock() if isinstance(engine.pool, StaticPool) else None
        )

    @contextmanager
    def _transaction(self) -> Generator[Session, None, None]:
        """Yield a session that commits on success and always closes."""
        guard = self._shared_connection_lock or nullcontext()
        with guard:
            session = self._session_factory()
            try:
                yield session
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise StorageError(f"Stats transaction failed: {exc}") from exc
            except Exception:
                session.rollback()
                raise
            finally:
                session.close()

    def create_schema(self) -> None:
        """Create the stats table if it does not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Failed to create stats schema: {exc}") from exc
        logger.info("Stats schema ready on %s", self.engine.url.render_as_string())

    def get_and_increment(self, name: str) -> int:
        """Increment the counter for ``name`` and return the new value.

        A name seen for the first time starts at 1.

        Args:
            name: Greeted name

        Returns:
            Counter value after the increment

        Raises:
            StorageError: If the transaction fails at any step.
        """
        with self._transaction() as session:
            insert = _UPSERT_INSERTS.get(self.engine.dialect.name)
            if insert is not None:
                count = self._upsert(session, insert, name)
            else:
                count = self._select_then_write(session, name)

        if count == 1:
            logger.info("initialised count to 1 (name=%r)", name)
        else:
            logger.info("updated count to %d (name=%r)", count, name)
        return count

    @staticmethod
    def _upsert(
        session: Session, insert: Callable[..., Insert], name: str
    ) -> int:
        stmt = insert(Stat).values(name=name, count=1)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Stat.name],
            set_={"count": Stat.count + 1},
        ).returning(Stat.count)
        return session.execute(stmt).scalar_one()

    @staticmethod
    def _select_then_write(session: Session, name: str) -> int:
        stat = session.get(Stat, name)
        if stat is None:
            session.add(Stat(name=name, count=1))
            return 1
        stat.count += 1
        return stat.count

    def get_count(self, name: str) -> int:
        """Return the stored counter for ``name`` (0 if never seen)."""
        with self._transaction() as session:
            count = session.scalar(select(Stat.count).where(Stat.name == name))
        return count or 0

    def instrument(self, tracer_provider: trace.TracerProvider) -> None:
        """Emit a span for every SQL statement run through this store.

        Raises:
            StorageError: If the instrumentor refuses the engine, e.g. when the
                          installed SQLAlchemy is outside its supported range.
        """
        engine_tracer = SQLAlchemyInstrumentor().instrument(
            engine=self.engine, tracer_provider=tracer_provider
        )
        if engine_tracer is None:
            raise StorageError(
                "SQL span instrumentation could not be attached to the stats engine"
            )

    def dispose(self) -> None:
        """Dispose the engine (useful for graceful shutdown)."""
        self.engine.dispose()
        logger.info("Disposed stats engine")
