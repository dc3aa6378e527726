"""
Module: ledger_kernel.db.engine
Responsibility: SQLAlchemy engine initialization, session factory management,
    and the transactional scope helper.  Single point of database connection
    configuration for the SQL-backed project store.
Architecture position: Kernel > DB.  May import from db/base.py.  MUST NOT
    import from domain/ or outer layers (create_tables imports models).

Invariants enforced:
    - session_scope() commits a unit of work on success and rolls it back on
      any exception.
    - SQLite URLs get a shared connection for ``:memory:`` databases so that
      every session sees the same schema.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory is called
      before init_engine_from_url().
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 5,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
) -> Engine:
    """
    Initialize the SQLAlchemy engine from a database URL.

    Postconditions: module-level engine and session factory are set; a
        second call replaces the first.

    Args:
        database_url: e.g. ``sqlite:///:memory:`` or ``postgresql://user@host/db``.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (ignored for SQLite).
        max_overflow: Max connections beyond pool_size (ignored for SQLite).
        pool_pre_ping: Test connections before use.
    """
    global _engine, _SessionFactory

    if database_url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url.rstrip("/") == "sqlite:":
            kwargs["poolclass"] = StaticPool
        _engine = create_engine(database_url, echo=echo, **kwargs)
    else:
        _engine = create_engine(
            database_url,
            echo=echo,
            pool_size=pool_size,
            max_overflow=max_overflow,
            pool_pre_ping=pool_pre_ping,
        )

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "echo": echo,
        },
    )
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    return get_session_factory()()


def get_session_factory() -> sessionmaker[Session]:
    """Session factory, for callers that open one session per unit of work."""
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    One unit of work against the SQL project store.

    ``SqlProjectStore`` only flushes; the scope commits everything written
    through its session on a clean exit and rolls all of it back on any
    exception, so a failed create or save leaves no project row behind.

    Usage:
        with session_scope() as session:
            SqlProjectStore(session).create("P-1", register)
    """
    session = get_session()
    try:
        yield session
        session.commit()
        logger.debug("unit_of_work_committed")
    except Exception as exc:
        session.rollback()
        logger.warning("unit_of_work_rolled_back", extra={"error": type(exc).__name__})
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create all tables for the ledger models."""
    from ledger_kernel.db.base import Base
    import ledger_kernel.models  # noqa: F401  registers tables on Base.metadata

    Base.metadata.create_all(get_engine())


def drop_tables() -> None:
    """Drop all tables. Primarily for testing."""
    from ledger_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)
