"""
Module: contravention_kernel.db.engine
Responsibility: build the SQLAlchemy engine and session factory, and offer a
    commit-or-rollback session scope.
Architecture position: Kernel > DB.  create_tables/drop_tables import the
    models package lazily so that importing this module stays cheap.

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; point records, training records and
      sequence counters are serialized with SELECT ... FOR UPDATE.
    - SQLite connections run in driver autocommit with SQLAlchemy emitting
      BEGIN itself, which keeps SAVEPOINT usable.  FOR UPDATE is a no-op
      there and the database-level write lock serializes writers instead.
    - Sessions never expire loaded objects on commit; DTOs built after
      commit read the committed values.

Failure modes:
    - RuntimeError from get_engine/get_session/get_session_factory before
      init_engine_from_url().
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from contravention_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")


@dataclass(frozen=True)
class PoolSettings:
    """Connection pool options for server databases."""

    size: int = 10
    overflow: int = 5
    timeout: int = 30
    recycle: int = 1800
    pre_ping: bool = True


@dataclass
class _DatabaseHandle:
    engine: Engine | None = None
    factory: sessionmaker[Session] | None = None

    def require_factory(self) -> sessionmaker[Session]:
        if self.factory is None:
            raise RuntimeError("Database not initialized; call init_engine_from_url() first")
        return self.factory


_db = _DatabaseHandle()


def _sqlite_engine(url, echo: bool) -> Engine:
    kwargs: dict = {"connect_args": {"check_same_thread": False}}
    if url.database in (None, "", ":memory:"):
        # One shared connection, or every session would get its own empty database.
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, echo=echo, **kwargs)

    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, _record):
        dbapi_connection.isolation_level = None
        dbapi_connection.execute("PRAGMA foreign_keys=ON")

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def create_engine_from_url(
    database_url: str, echo: bool = False, pool: PoolSettings | None = None
) -> Engine:
    """Engine for *database_url*; does not touch module state."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        return _sqlite_engine(url, echo)

    pool = pool or PoolSettings()
    return create_engine(
        url,
        echo=echo,
        pool_size=pool.size,
        max_overflow=pool.overflow,
        pool_timeout=pool.timeout,
        pool_recycle=pool.recycle,
        pool_pre_ping=pool.pre_ping,
        isolation_level="READ COMMITTED",
    )


def init_engine_from_url(
    database_url: str, echo: bool = False, pool: PoolSettings | None = None
) -> Engine:
    """
    Install the process-wide engine and session factory.

    A second call disposes nothing and simply replaces the first; call
    reset_engine() beforehand to release the old pool.
    """
    engine = create_engine_from_url(database_url, echo=echo, pool=pool)
    _db.engine = engine
    _db.factory = sessionmaker(bind=engine, expire_on_commit=False)

    configure_logging()
    logger.info("engine_initialized", extra={"dialect": engine.dialect.name, "echo": echo})
    return engine


def get_engine() -> Engine:
    if _db.engine is None:
        raise RuntimeError("Database not initialized; call init_engine_from_url() first")
    return _db.engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory for callers that need one session per thread."""
    return _db.require_factory()


def get_session() -> Session:
    return _db.require_factory()()


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Session that commits on clean exit and rolls back on any exception.

        with session_scope() as session:
            PointsMaintenanceService(session, ledger).recalculate_all_escalations()
    """
    session = get_session()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        logger.warning("session_scope_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables(engine: Engine | None = None) -> None:
    """Create every kernel table and switch on the append-only listeners."""
    import contravention_kernel.models  # noqa: F401
    from contravention_kernel.db.base import Base
    from contravention_kernel.db.immutability import register_immutability_listeners

    Base.metadata.create_all(engine or get_engine())
    register_immutability_listeners()


def drop_tables(engine: Engine | None = None) -> None:
    import contravention_kernel.models  # noqa: F401
    from contravention_kernel.db.base import Base

    Base.metadata.drop_all(engine or get_engine())


def reset_engine() -> None:
    """Dispose the pool and forget the factory.  Used by test teardown."""
    if _db.engine is not None:
        _db.engine.dispose()
    _db.engine = None
    _db.factory = None


def is_postgres() -> bool:
    return _db.engine is not None and _db.engine.dialect.name == "postgresql"


atexit.register(reset_engine)
