"""Database connection, session management and transient-failure retry."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any, TypeVar

from sqlalchemy import event
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from quota_engine.config import get_settings
from quota_engine.models import Base

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

logger = logging.getLogger(__name__)

T = TypeVar("T")

# PostgreSQL SQLSTATEs that mean "try again": serialization failure, deadlock
TRANSIENT_PGCODES = {"40001", "40P01"}


def create_engine_for(url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite connections get foreign keys enabled and start every transaction
    with BEGIN IMMEDIATE, so writers serialize the way row locks serialize
    them on PostgreSQL.
    """
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False, **kwargs)
        _install_sqlite_hooks(engine)
        return engine

    return create_async_engine(
        url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
        **kwargs,
    )


def _install_sqlite_hooks(engine: AsyncEngine) -> None:
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        # Take over BEGIN from the driver
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by the engine facade, the API and tests."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def init_db() -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    """Initialize database engine and session factory."""
    global _engine, _session_factory
    if _engine is None:
        _engine = create_engine_for(get_settings().database_url)
        _session_factory = create_session_factory(_engine)
    assert _session_factory is not None
    return _engine, _session_factory


async def dispose_db() -> None:
    """Dispose the global engine."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def is_transient_error(exc: BaseException) -> bool:
    """Whether a storage error may succeed if the transaction is retried.

    Integrity violations are never transient: they describe a consistent
    business state (e.g. a permit number that is already taken).
    """
    if isinstance(exc, IntegrityError):
        return False
    if isinstance(exc, DBAPIError):
        if exc.connection_invalidated:
            return True
        pgcode = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
        if pgcode in TRANSIENT_PGCODES:
            return True
        if isinstance(exc, OperationalError):
            message = str(exc.orig).lower()
            return "database is locked" in message or "deadlock" in message
    return False


async def run_with_retry(
    operation: Callable[[], Awaitable[T]],
    *,
    attempts: int = 3,
    base_delay: float = 0.05,
) -> T:
    """Run an operation, retrying transient storage failures.

    Delays grow exponentially: base_delay, 2 * base_delay, 4 * base_delay...
    Business errors and non-transient storage errors propagate immediately.
    """
    delays = [base_delay * (2**i) for i in range(max(attempts - 1, 0))]
    for attempt, delay in enumerate([*delays, None], start=1):
        try:
            return await operation()
        except DBAPIError as exc:
            if delay is None or not is_transient_error(exc):
                raise
            logger.warning(
                "Transient storage failure (attempt %d/%d), retrying in %.3fs: %s",
                attempt,
                attempts,
                delay,
                exc.orig,
            )
            await asyncio.sleep(delay)
    raise RuntimeError("unreachable")


def is_unique_violation(exc: IntegrityError, constraint_name: str, column: str) -> bool:
    """Whether an IntegrityError came from a specific unique constraint.

    PostgreSQL reports the constraint name; SQLite reports "table.column".
    """
    message = str(exc.orig)
    return constraint_name in message or column in message
