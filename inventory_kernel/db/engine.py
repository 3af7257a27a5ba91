"""
Module: inventory_kernel.db.engine
Responsibility: SQLAlchemy engine construction, session factory management,
    and transactional scope utilities.  This is the single point of database
    connection configuration for the entire system.
Architecture position: Kernel > DB.  May import from db/base.py and
    db/triggers.py.  MUST NOT import from services/, selectors/, domain/, or
    outer layers (create_tables imports models so metadata is complete).

Invariants enforced:
    - PostgreSQL sessions run at READ COMMITTED with explicit row-level
      locking (SELECT ... FOR UPDATE) where stronger isolation is needed.
    - SQLite sessions open every transaction with BEGIN IMMEDIATE, taking the
      database write lock up front.  SQLite has no row locks, so this is the
      only way to make FOR UPDATE-style read-then-write sequences safe there.
    - SQLite foreign keys are switched on for every connection.
    - Lock waits are bounded: SQLite busy timeout comes from lock_timeout_ms;
      PostgreSQL lock_timeout is set per transaction by the consistency guard.

Failure modes:
    - RuntimeError if get_engine/get_session/get_session_factory called before
      init_engine_from_url().
    - OperationalError on lock wait timeout ("database is locked" on SQLite,
      SQLSTATE 55P03 on PostgreSQL); mapped to ConcurrencyConflictError by the
      consistency guard.

Audit relevance:
    All stock movements flow through sessions created by this module.  The
    session_scope() context manager guarantees commit-or-rollback, which is
    what makes a multi-line receipt all-or-nothing.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

from inventory_kernel.logging_config import configure_logging, get_logger

logger = get_logger("db.engine")

# Module-level engine and session factory (bootstrap convenience only;
# services always receive their session explicitly)
_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None


def _install_sqlite_hooks(engine: Engine) -> None:
    """Take over pysqlite transaction handling so BEGIN IMMEDIATE and
    SAVEPOINT behave like a real transactional store."""

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Disable pysqlite's implicit BEGIN; we emit our own.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def build_engine(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = 5000,
) -> Engine:
    """
    Create an engine for PostgreSQL or SQLite without touching module state.

    Preconditions: database_url is a postgresql:// or sqlite:// URL.
    Postconditions: Returned engine is configured for the dialect's locking
        discipline (see module docstring).

    Args:
        database_url: Connection URL.
        echo: If True, log all SQL statements.
        pool_size: Connections kept in the pool (PostgreSQL).
        max_overflow: Max connections beyond pool_size (PostgreSQL).
        pool_pre_ping: Test connections before use (PostgreSQL).
        pool_timeout: Seconds to wait for a pooled connection.
        pool_recycle: Seconds after which a connection is recycled.
        lock_timeout_ms: SQLite busy timeout (lock wait bound).

    Returns:
        SQLAlchemy Engine instance.
    """
    url = make_url(database_url)

    if url.get_backend_name() == "sqlite":
        in_memory = url.database in (None, "", ":memory:")
        kwargs: dict = {
            "echo": echo,
            "connect_args": {
                "check_same_thread": False,
                "timeout": lock_timeout_ms / 1000.0,
            },
        }
        if in_memory:
            # One shared connection, otherwise each checkout sees an empty DB
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        _install_sqlite_hooks(engine)
        return engine

    return create_engine(
        url,
        echo=echo,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        isolation_level="READ COMMITTED",
    )


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    """Session factory used by the consistency guard and the module globals."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
    lock_timeout_ms: int = 5000,
) -> Engine:
    """
    Initialize the module-level engine and session factory.

    Postconditions: All subsequent get_engine/get_session calls use this
        engine.  A second call overwrites the first.

    Returns:
        SQLAlchemy Engine instance.
    """
    global _engine, _SessionFactory

    _engine = build_engine(
        database_url,
        echo=echo,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_pre_ping=pool_pre_ping,
        pool_timeout=pool_timeout,
        pool_recycle=pool_recycle,
        lock_timeout_ms=lock_timeout_ms,
    )
    _SessionFactory = build_session_factory(_engine)

    configure_logging()
    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool_size": pool_size,
            "lock_timeout_ms": lock_timeout_ms,
            "echo": echo,
        },
    )

    return _engine


def get_engine() -> Engine:
    """
    Get the current engine instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _engine is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine


def get_session() -> Session:
    """
    Get a new session instance.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory()


def get_session_factory() -> sessionmaker[Session]:
    """
    Get the session factory for creating sessions.

    Each thread (request) must use its own session.

    Raises:
        RuntimeError: If engine has not been initialized.
    """
    if _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _SessionFactory


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Provide a transactional scope around a series of operations.

    Postconditions: On normal exit, session is committed and closed.
        On exception, session is rolled back and closed, and the exception
        is re-raised.

    Usage:
        with session_scope() as session:
            session.add(entity)
    """
    session = get_session()
    logger.debug("transaction_started")
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


def create_tables(engine: Engine | None = None, install_triggers: bool = True) -> None:
    """
    Create all tables and, on PostgreSQL, install append-only triggers.

    Args:
        engine: Target engine; defaults to the module-level engine.
        install_triggers: If True and the engine is PostgreSQL, install the
            ledger/audit immutability triggers.
    """
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401  (populates Base.metadata)

    engine = engine or get_engine()
    Base.metadata.create_all(engine)

    if install_triggers and engine.dialect.name == "postgresql":
        from inventory_kernel.db.triggers import install_immutability_triggers

        install_immutability_triggers(engine)

    logger.info("tables_created", extra={"dialect": engine.dialect.name})


def drop_tables(engine: Engine | None = None) -> None:
    """Drop all tables. Use with caution - primarily for testing."""
    from inventory_kernel.db.base import Base
    import inventory_kernel.models  # noqa: F401

    engine = engine or get_engine()
    if engine.dialect.name == "postgresql":
        from inventory_kernel.db.triggers import uninstall_immutability_triggers

        uninstall_immutability_triggers(engine)
    Base.metadata.drop_all(engine)


def reset_engine() -> None:
    """Reset the engine and session factory. Useful for test cleanup."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
        _engine = None

    _SessionFactory = None


def _atexit_dispose():
    """Dispose the engine on process exit to release all pooled connections."""
    if _engine is not None:
        _engine.dispose()


atexit.register(_atexit_dispose)


def is_postgres(engine: Engine | None = None) -> bool:
    """Check if the given (or current) engine is PostgreSQL."""
    engine = engine or _engine
    if engine is None:
        return False
    return engine.dialect.name == "postgresql"
