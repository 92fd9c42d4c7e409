"""
Module: declaration_kernel.db.engine
Responsibility: The process-wide engine and session factory, and the
    transaction scope every entry point runs in.
Architecture position: Kernel > DB.  May import from db/base.py; only
    ``create_tables`` reaches into models/ (to register the tables).

Invariants enforced:
    - PostgreSQL runs at READ COMMITTED; services lock the declaration, session
      or job row they are about to transition with SELECT ... FOR UPDATE.
    - One transaction per entry-point invocation: ``session_scope()`` commits
      on success and rolls back on any exception.
    - SQLite (local runs, tests) gets explicit BEGIN so per-item SAVEPOINTs
      nest correctly.

Failure modes:
    - RuntimeError when a session is requested before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from declaration_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

_NOT_INITIALIZED = "Engine not initialized. Call init_engine_from_url() first."


def enable_sqlite_savepoints(engine: Engine) -> Engine:
    """
    Make pysqlite emit BEGIN itself so SAVEPOINTs nest inside the outer
    transaction.  Required for the per-item SAVEPOINTs of job and session
    processing.
    """

    @event.listens_for(engine, "connect")
    def _disable_implicit_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 5,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the engine for ``database_url`` and replace any previous one.

    ``postgresql+psycopg2://...`` is the production form.  A ``sqlite://``
    URL skips pooling options and READ COMMITTED, neither of which SQLite
    supports; FOR UPDATE is ignored there.
    """
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()

    if database_url.startswith("sqlite"):
        _engine = enable_sqlite_savepoints(create_engine(database_url, echo=echo))
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            poolclass=QueuePool,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=True,
            pool_timeout=pool_timeout,
            pool_recycle=pool_recycle,
            isolation_level="READ COMMITTED",
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={"dialect": _engine.dialect.name, "echo": echo},
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Factory handed to the scheduler, which opens one session per entry."""
    if _SessionFactory is None:
        raise RuntimeError(_NOT_INITIALIZED)
    return _SessionFactory


def get_session() -> Session:
    return get_session_factory()()


@contextmanager
def session_scope(
    factory: sessionmaker[Session] | None = None,
) -> Generator[Session, None, None]:
    """
    One entry-point transaction: commit on normal exit, roll back and
    re-raise on any exception, always close.

    Usage:
        with session_scope() as session:
            DeclarationDetector(session).detect_and_create_for_late_weight_tickets()
    """
    session = factory() if factory is not None else get_session()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception:
        session.rollback()
        logger.warning("transaction_rolled_back", exc_info=True)
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create the declaration, session, job and weight-ticket tables."""
    from declaration_kernel.db.base import Base
    import declaration_kernel.models  # noqa: F401

    Base.metadata.create_all(get_engine())
    logger.info("tables_created", extra={"tables": sorted(Base.metadata.tables)})


def reset_engine() -> None:
    """Dispose the engine and forget the session factory (test cleanup)."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
