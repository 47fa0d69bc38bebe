"""
Database Service - Core Infrastructure Layer

Purpose
-------
Centralized async database engine and session management for the roster
engine. Every command runs inside exactly one atomic transaction obtained
from here.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for read-only sessions and atomic transactions
- Enforce transaction discipline: commit on success, rollback on exception
- Translate storage-level uniqueness, serialization and lock failures into
  the retryable `StorageConflictError`
- Support pessimistic row locking via `with_for_update=True`
- Configure statement timeouts for PostgreSQL connections
- Enable foreign keys for SQLite connections

Non-Responsibilities
--------------------
- Schema management (see `guildroster.core.database.bootstrap`)
- Domain rules and event emission (services)

Architecture Notes
------------------
**Transaction Model**:
- `get_transaction()` is the only write path
- Never call `session.commit()` inside service code
- Lock rows that gate an invariant: `await session.get(Model, pk, with_for_update=True)`

**Connection Pooling**:
- AsyncAdaptedQueuePool for server databases (pool_size / max_overflow)
- NullPool for SQLite and testing environments

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
>>>     guild = await DatabaseService.get_locked_entity(session, Guild, guild_id)
>>>     guild.leader_id = new_leader_id
>>>     # Automatic commit on exit

Error Handling
--------------
**DatabaseInitializationError** - DATABASE_URL missing/invalid or engine creation fails.
**DatabaseNotInitializedError** - session requested before initialize() or after shutdown().
**StorageConflictError** - unique violation, serialization failure, deadlock or
lock timeout; the transaction is rolled back and the caller may retry.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type, TypeVar

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool, Pool

from guildroster.core.config.config import Config
from guildroster.core.logging.logger import get_logger
from guildroster.modules.shared.exceptions import StorageConflictError

logger = get_logger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available
_CONFLICT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


# ============================================================================
# Infrastructure Exceptions
# ============================================================================


class DatabaseInitializationError(RuntimeError):
    """Raised when database engine initialization fails."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when database operations are attempted before initialization."""


# ============================================================================
# Configuration Snapshot
# ============================================================================


@dataclass(frozen=True)
class _DatabaseConfigSnapshot:
    """Immutable view of the database configuration for the engine's lifetime."""

    url: str
    echo: bool
    pool_class: Type[Pool]
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def is_postgres(self) -> bool:
        return self.url.startswith(("postgresql://", "postgresql+asyncpg://"))

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith("sqlite")

    @property
    def url_scheme(self) -> str:
        return self.url.split(":", 1)[0] if ":" in self.url else "unknown"


def is_storage_conflict(exc: BaseException) -> bool:
    """
    True when `exc` is a storage-level race a retry could resolve.

    Covers unique/foreign key violations, PostgreSQL serialization failures,
    deadlocks and lock timeouts, and SQLite's "database is locked".
    """
    if isinstance(exc, IntegrityError):
        return True
    if not isinstance(exc, DBAPIError):
        return False

    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code in _CONFLICT_SQLSTATES:
            return True

    return "database is locked" in str(orig).lower()


# ============================================================================
# DatabaseService
# ============================================================================


class DatabaseService:
    """
    Centralized async database engine and session management.

    Public API
    ----------
    - initialize(url=None) / shutdown()
    - get_session() -> read-only session
    - get_transaction() -> atomic write transaction
    - health_check()
    - get_locked_entity()
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: Optional[asyncio.Lock] = None

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _lock(cls) -> asyncio.Lock:
        # Created lazily so the lock binds to the running loop.
        if cls._init_lock is None:
            cls._init_lock = asyncio.Lock()
        return cls._init_lock

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str] = None) -> _DatabaseConfigSnapshot:
        """
        Build an immutable configuration snapshot from Config.

        Raises
        ------
        DatabaseInitializationError
            If no database URL is available.
        """
        database_url = url or getattr(Config, "DATABASE_URL", None)
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        is_sqlite = database_url.startswith("sqlite")
        pool_class: Type[Pool] = (
            NullPool if is_sqlite or Config.is_testing() else AsyncAdaptedQueuePool
        )

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=bool(Config.DATABASE_ECHO),
            pool_class=pool_class,
            pool_size=int(Config.DATABASE_POOL_SIZE),
            max_overflow=int(Config.DATABASE_MAX_OVERFLOW),
            pool_recycle=int(Config.DATABASE_POOL_RECYCLE),
            pool_timeout=int(Config.DATABASE_POOL_TIMEOUT),
            statement_timeout_ms=int(Config.DATABASE_STATEMENT_TIMEOUT_MS),
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "pool_class": pool_class.__name__,
                "pool_size": snapshot.pool_size,
                "max_overflow": snapshot.max_overflow,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
            },
        )

        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately when already initialized. `url`
        overrides `Config.DATABASE_URL` (tests pass a temporary SQLite file).

        Raises
        ------
        DatabaseInitializationError
            If configuration is invalid or engine creation fails.
        """
        async with cls._lock():
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(url)

                engine_kwargs: dict[str, Any] = {
                    "echo": config.echo,
                    "poolclass": config.pool_class,
                }
                if config.pool_class is AsyncAdaptedQueuePool:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                            "pool_pre_ping": True,
                        }
                    )

                engine = create_async_engine(config.url, **engine_kwargs)

                if config.is_sqlite:
                    event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

                cls._engine = engine
                cls._config_snapshot = config
                cls._session_factory = async_sessionmaker(
                    bind=engine,
                    class_=AsyncSession,
                    expire_on_commit=False,
                )

                logger.info(
                    "DatabaseService initialized successfully",
                    extra={
                        "url_scheme": config.url_scheme,
                        "pool_class": config.pool_class.__name__,
                    },
                )

            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                if isinstance(exc, DatabaseInitializationError):
                    raise
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine and reset internal state. Safe to call repeatedly."""
        async with cls._lock():
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")

            try:
                await cls._engine.dispose()
                logger.info("DatabaseService shutdown complete")
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        cls._ensure_initialized()
        assert cls._engine is not None
        return cls._engine

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Lightweight `SELECT 1` reachability probe.

        Returns False instead of raising when the database is unreachable.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        success = False

        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            success = True
            return True

        except (OperationalError, DBAPIError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False

        finally:
            logger.debug(
                "Database health check completed",
                extra={
                    "success": success,
                    "duration_ms": (time.perf_counter() - start) * 1000.0,
                },
            )

    # ========================================================================
    # Session & Transaction Context Managers
    # ========================================================================

    @classmethod
    def _ensure_initialized(cls) -> None:
        if cls._session_factory is None or cls._engine is None:
            logger.error("DatabaseService operation attempted before initialization")
            raise DatabaseNotInitializedError(
                "DatabaseService must be initialized before use. "
                "Call DatabaseService.initialize() during startup."
            )

    @classmethod
    def _get_config_snapshot(cls) -> _DatabaseConfigSnapshot:
        if cls._config_snapshot is None:
            raise DatabaseNotInitializedError("DatabaseService is not initialized")
        return cls._config_snapshot

    @classmethod
    async def _apply_statement_timeout(cls, session: AsyncSession) -> None:
        config = cls._get_config_snapshot()
        if config.is_postgres:
            await session.execute(
                text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
            )

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session without automatic commit, for read-only queries.

        For writes use `get_transaction()`.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                yield session
            finally:
                await session.close()
                logger.debug(
                    "Database session closed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Session wrapped in an atomic transaction.

        On success the transaction commits. On any exception it rolls back;
        storage conflicts are re-raised as `StorageConflictError`, everything
        else (domain errors included) propagates unchanged.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                await cls._apply_statement_timeout(session)
                logger.debug("Database transaction started")
                yield session
                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except DBAPIError as exc:
                await session.rollback()
                duration_ms = (time.perf_counter() - start) * 1000.0

                if is_storage_conflict(exc):
                    logger.warning(
                        "Storage conflict in transaction; rolled back",
                        extra={
                            "error": str(exc.orig),
                            "error_type": type(exc).__name__,
                            "duration_ms": duration_ms,
                        },
                    )
                    raise StorageConflictError(
                        "The operation conflicted with a concurrent change; retry it",
                        details={"error_type": type(exc).__name__},
                    ) from exc

                logger.error(
                    "DBAPIError in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": duration_ms,
                    },
                    exc_info=True,
                )
                raise

            except Exception as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                )
                raise

    # ========================================================================
    # Pessimistic Locking Helper
    # ========================================================================

    @classmethod
    async def get_locked_entity(
        cls,
        session: AsyncSession,
        model: Type[T],
        primary_key: Any,
    ) -> Optional[T]:
        """
        Fetch an entity with a row lock (SELECT ... FOR UPDATE).

        Must be used within `get_transaction()`; the lock is held until the
        transaction ends. SQLite ignores the clause and serializes writers
        at the database level instead.
        """
        return await session.get(model, primary_key, with_for_update=True, populate_existing=True)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
