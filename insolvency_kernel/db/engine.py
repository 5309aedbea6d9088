"""
Module: insolvency_kernel.db.engine
Responsibility: The ledger's one database connection point: engine and
    session factory setup, the commit-or-nothing ``session_scope``, schema
    creation for tests and the admin CLI.
Architecture position: Kernel > DB.  Imports db/base.py, exceptions and
    logging only.  create_tables() additionally loads the models and the
    sequence service to seed counters.

Invariants enforced:
    - PostgreSQL connections run at READ COMMITTED.  Case-level mutual
      exclusion comes from SELECT ... FOR UPDATE on the case row, not from
      the isolation level.
    - Every SQLite connection has PRAGMA foreign_keys on, so the cascade
      and restrict rules of the schema hold locally too.
    - session_scope() commits everything or nothing.  A lost race in the
      driver (serialization failure, deadlock, lock wait, SQLite busy)
      leaves it as ConflictError, the only retryable error.

Failure modes:
    - RuntimeError from every accessor before init_engine_from_url().
    - ConflictError as above; all other errors propagate unchanged.
"""

import atexit
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import QueuePool, StaticPool

from insolvency_kernel.exceptions import ConflictError
from insolvency_kernel.logging_config import get_logger

logger = get_logger("db.engine")

_engine: Engine | None = None
_SessionFactory: sessionmaker[Session] | None = None

CONFLICT_MARKERS = (
    "could not serialize access",
    "deadlock detected",
    "lock timeout",
    "database is locked",
    "database table is locked",
)

_IN_MEMORY_SQLITE = ("sqlite:", "sqlite+pysqlite:")


def _foreign_keys_on(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_options(database_url: str, busy_timeout: int) -> dict[str, Any]:
    options: dict[str, Any] = {
        # The facade opens sessions from worker threads
        "connect_args": {"check_same_thread": False, "timeout": busy_timeout},
    }
    if ":memory:" in database_url or database_url.rstrip("/") in _IN_MEMORY_SQLITE:
        # One shared connection, or each session would see an empty database
        options["poolclass"] = StaticPool
    return options


def _server_options(
    pool_size: int, max_overflow: int, pool_pre_ping: bool, pool_timeout: int, pool_recycle: int
) -> dict[str, Any]:
    return {
        "poolclass": QueuePool,
        "pool_size": pool_size,
        "max_overflow": max_overflow,
        "pool_pre_ping": pool_pre_ping,
        "pool_timeout": pool_timeout,
        "pool_recycle": pool_recycle,
        "isolation_level": "READ COMMITTED",
    }


def init_engine_from_url(
    database_url: str,
    echo: bool = False,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_pre_ping: bool = True,
    pool_timeout: int = 30,
    pool_recycle: int = 1800,
) -> Engine:
    """
    Create the process-wide engine and session factory for ``database_url``.

    Pool settings apply to server databases.  For SQLite ``pool_timeout``
    doubles as the busy timeout in seconds.  Calling again replaces the
    previous engine without disposing it; call reset_engine() first.
    """
    global _engine, _SessionFactory

    sqlite = database_url.startswith("sqlite")
    if sqlite:
        options = _sqlite_options(database_url, pool_timeout)
    else:
        options = _server_options(
            pool_size, max_overflow, pool_pre_ping, pool_timeout, pool_recycle
        )
    _engine = create_engine(database_url, echo=echo, **options)
    if sqlite:
        event.listen(_engine, "connect", _foreign_keys_on)

    _SessionFactory = sessionmaker(bind=_engine, expire_on_commit=False)

    logger.info(
        "engine_initialized",
        extra={
            "dialect": _engine.dialect.name,
            "pool": type(_engine.pool).__name__,
            "echo": echo,
        },
    )
    return _engine


def _initialized() -> tuple[Engine, sessionmaker[Session]]:
    if _engine is None or _SessionFactory is None:
        raise RuntimeError("Engine not initialized. Call init_engine_from_url() first.")
    return _engine, _SessionFactory


def get_engine() -> Engine:
    return _initialized()[0]


def get_session_factory() -> sessionmaker[Session]:
    """The shared factory; threads each open their own session from it."""
    return _initialized()[1]


def get_session() -> Session:
    return get_session_factory()()


def is_conflict(exc: BaseException) -> bool:
    """True when ``exc`` means the transaction lost a race and may be retried."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in CONFLICT_MARKERS)
    return False


@contextmanager
def session_scope(session_factory: sessionmaker[Session] | None = None) -> Iterator[Session]:
    """
    One transaction: commit on a clean exit, roll back on any exception.

    Usage:
        with session_scope() as session:
            FundLedgerService(session, clock).record_transaction(...)
    """
    session = (session_factory or get_session_factory())()
    try:
        yield session
        session.commit()
        logger.debug("transaction_committed")
    except Exception as exc:
        session.rollback()
        if is_conflict(exc):
            logger.warning("transaction_conflict", extra={"error": str(exc)})
            raise ConflictError("transaction", None, str(exc)) from exc
        logger.debug("transaction_rolled_back", extra={"error_type": type(exc).__name__})
        raise
    finally:
        session.close()


def create_tables() -> None:
    """Create every model's table and seed the sequence counters."""
    from insolvency_kernel.db.base import Base

    import insolvency_kernel.models  # noqa: F401  (populates Base.metadata)
    from insolvency_kernel.services.sequence_service import SequenceService

    Base.metadata.create_all(get_engine())
    with session_scope() as session:
        SequenceService(session).initialize_sequences()

    logger.info("tables_created", extra={"table_count": len(Base.metadata.tables)})


def drop_tables() -> None:
    """Drop every table.  Test and admin use only."""
    from insolvency_kernel.db.base import Base

    Base.metadata.drop_all(get_engine())


def reset_engine() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _SessionFactory

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _SessionFactory = None


@atexit.register
def _dispose_on_exit() -> None:
    if _engine is not None:
        _engine.dispose()
