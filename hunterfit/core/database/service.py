"""
Database Service - Core Infrastructure Layer (HunterFit 2025)

Purpose
-------
Centralized async database engine and session management for the HunterFit
progression core. Provides atomic transactions, pessimistic locking, schema
bootstrap and a health check for all engine services.

Responsibilities
----------------
- Initialize and manage a single AsyncEngine instance with connection pooling
- Provide async context managers for read-only sessions and atomic transactions
- Enforce transaction discipline: automatic commit on success, rollback on exception
- Support pessimistic row locking via ``with_for_update=True``
- Configure statement timeouts for PostgreSQL connections
- Enable foreign keys and a busy timeout on SQLite connections
- Provide idempotent initialization with async lock protection

Non-Responsibilities
--------------------
- Retry policies for transient failures (callers decide)
- Database migrations (``create_schema`` is for bootstrap and tests)
- Domain logic, business rules or event emission

Architecture Notes
------------------
**Transaction Model**:
- ``get_transaction()`` is the primary interface for all state mutations
- Automatic commit on success, rollback on any exception
- Never manually call ``session.commit()`` inside service code
- Domain exceptions propagate unchanged; driver failures surface as
  ``DatabaseError``

**Connection Pooling**:
- QueuePool-backed async pool for PostgreSQL
- NullPool for SQLite and for the testing environment

Usage Example
-------------
>>> async with DatabaseService.get_transaction() as session:
...     hunter = await session.get(Hunter, hunter_id, with_for_update=True)
...     hunter.total_workouts += 1
...     # Automatic commit on exit
"""

from __future__ import annotations

import asyncio
import time
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Optional, Type, TypeVar

from sqlalchemy import event, text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from hunterfit.core.config.config import Config
from hunterfit.core.database.base import Base
from hunterfit.core.exceptions import DatabaseError
from hunterfit.core.logging.logger import get_logger

logger = get_logger(__name__)

T = TypeVar("T")


class DatabaseInitializationError(RuntimeError):
    """Raised when the engine cannot be created from configuration."""


class DatabaseNotInitializedError(RuntimeError):
    """Raised when a session is requested before ``initialize()``."""


@dataclass(frozen=True, slots=True)
class _DatabaseConfigSnapshot:
    url: str
    echo: bool
    use_null_pool: bool
    pool_size: int
    max_overflow: int
    pool_recycle: int
    pool_timeout: int
    statement_timeout_ms: int

    @property
    def url_scheme(self) -> str:
        return self.url.split("://", 1)[0]

    @property
    def is_postgres(self) -> bool:
        return self.url_scheme.startswith("postgresql")

    @property
    def is_sqlite(self) -> bool:
        return self.url_scheme.startswith("sqlite")


class DatabaseService:
    """
    Classmethod-based database access shared by every service.

    Thread Safety
    -------------
    All classmethods are safe for concurrent access on one event loop.
    Initialization is protected by an async lock.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None
    _config_snapshot: Optional[_DatabaseConfigSnapshot] = None
    _init_lock: asyncio.Lock = asyncio.Lock()

    # ========================================================================
    # Initialization & Shutdown
    # ========================================================================

    @classmethod
    def _build_config_snapshot(cls, url: Optional[str]) -> _DatabaseConfigSnapshot:
        database_url = url or Config.DATABASE_URL
        if not database_url or not isinstance(database_url, str):
            logger.error("DATABASE_URL is not configured or invalid")
            raise DatabaseInitializationError(
                "DATABASE_URL must be configured as a non-empty string"
            )

        is_sqlite = database_url.startswith("sqlite")

        snapshot = _DatabaseConfigSnapshot(
            url=database_url,
            echo=Config.DATABASE_ECHO,
            use_null_pool=is_sqlite or Config.is_testing(),
            pool_size=Config.DATABASE_POOL_SIZE,
            max_overflow=Config.DATABASE_MAX_OVERFLOW,
            pool_recycle=Config.DATABASE_POOL_RECYCLE,
            pool_timeout=Config.DATABASE_POOL_TIMEOUT,
            statement_timeout_ms=Config.DATABASE_STATEMENT_TIMEOUT_MS,
        )

        logger.debug(
            "Database configuration snapshot created",
            extra={
                "url_scheme": snapshot.url_scheme,
                "null_pool": snapshot.use_null_pool,
                "pool_size": snapshot.pool_size,
                "statement_timeout_ms": snapshot.statement_timeout_ms,
            },
        )
        return snapshot

    @classmethod
    async def initialize(cls, url: Optional[str] = None) -> None:
        """
        Initialize the database engine and session factory.

        Idempotent: returns immediately when already initialized. ``url``
        overrides ``Config.DATABASE_URL`` (used by tests and tooling).
        """
        async with cls._init_lock:
            if cls._engine is not None:
                logger.debug("DatabaseService already initialized; skipping")
                return

            logger.info("Initializing DatabaseService")

            try:
                config = cls._build_config_snapshot(url)

                engine_kwargs: dict[str, Any] = {"echo": config.echo}
                if config.use_null_pool:
                    engine_kwargs["poolclass"] = NullPool
                else:
                    engine_kwargs.update(
                        {
                            "pool_size": config.pool_size,
                            "max_overflow": config.max_overflow,
                            "pool_recycle": config.pool_recycle,
                            "pool_timeout": config.pool_timeout,
                        }
                    )
                if config.is_sqlite:
                    engine_kwargs["connect_args"] = {"timeout": 30}

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
                    extra={"url_scheme": config.url_scheme},
                )

            except DatabaseInitializationError:
                raise
            except Exception as exc:
                logger.error(
                    "DatabaseService initialization failed",
                    extra={"error": str(exc), "error_type": type(exc).__name__},
                    exc_info=True,
                )
                raise DatabaseInitializationError(
                    f"Database initialization failed: {exc}"
                ) from exc

    @classmethod
    async def shutdown(cls) -> None:
        """Dispose the engine and reset state. Safe to call multiple times."""
        async with cls._init_lock:
            if cls._engine is None:
                logger.debug("DatabaseService not initialized; nothing to shutdown")
                return

            logger.info("Shutting down DatabaseService")
            try:
                await cls._engine.dispose()
            finally:
                cls._engine = None
                cls._session_factory = None
                cls._config_snapshot = None
            logger.info("DatabaseService shutdown complete")

    # ========================================================================
    # Schema
    # ========================================================================

    @classmethod
    async def create_schema(cls) -> None:
        """Create every table registered on ``Base.metadata``."""
        cls._ensure_initialized()
        assert cls._engine is not None

        # Register all mappers before create_all
        import hunterfit.database.models  # noqa: F401

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema created",
            extra={"table_count": len(Base.metadata.tables)},
        )

    @classmethod
    async def drop_schema(cls) -> None:
        cls._ensure_initialized()
        assert cls._engine is not None

        async with cls._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        logger.info("Database schema dropped")

    # ========================================================================
    # Health Check
    # ========================================================================

    @classmethod
    async def health_check(cls) -> bool:
        """
        Lightweight ``SELECT 1`` reachability probe.

        Never raises; returns False on failure.
        """
        if cls._engine is None:
            logger.warning("Health check called on uninitialized DatabaseService")
            return False

        start = time.perf_counter()
        try:
            async with cls._engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            return True
        except (OperationalError, DBAPIError, OSError) as exc:
            logger.warning(
                "Database health check failed",
                extra={"error": str(exc), "error_type": type(exc).__name__},
            )
            return False
        finally:
            logger.debug(
                "Database health check completed",
                extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
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
    def is_initialized(cls) -> bool:
        return cls._engine is not None

    @classmethod
    @asynccontextmanager
    async def get_session(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a database session without automatic commit.

        Use for read-only operations. For writes, prefer ``get_transaction()``.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None

        async with cls._session_factory() as session:
            logger.debug("Database session opened (read-only)")
            yield session

    @classmethod
    @asynccontextmanager
    async def get_transaction(cls) -> AsyncGenerator[AsyncSession, None]:
        """
        Create a session wrapped in an atomic transaction.

        On success the transaction commits. On any exception it rolls back and
        re-raises; driver-level failures are wrapped in ``DatabaseError`` and
        every other exception (domain errors included) propagates unchanged.
        """
        cls._ensure_initialized()
        assert cls._session_factory is not None
        config = cls._config_snapshot
        assert config is not None

        start = time.perf_counter()
        async with cls._session_factory() as session:
            try:
                if config.is_postgres:
                    await session.execute(
                        text(f"SET LOCAL statement_timeout = {config.statement_timeout_ms}")
                    )

                yield session

                await session.commit()
                logger.debug(
                    "Database transaction committed",
                    extra={"duration_ms": (time.perf_counter() - start) * 1000.0},
                )

            except (OperationalError, DBAPIError) as exc:
                await session.rollback()
                logger.error(
                    "Database error in transaction; rolled back",
                    extra={
                        "error": str(exc),
                        "error_type": type(exc).__name__,
                        "duration_ms": (time.perf_counter() - start) * 1000.0,
                    },
                    exc_info=True,
                )
                raise DatabaseError("transaction", exc) from exc

            except BaseException as exc:
                await session.rollback()
                logger.debug(
                    "Transaction rolled back",
                    extra={
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
        Fetch an entity with a pessimistic row lock (SELECT FOR UPDATE).

        ``populate_existing`` refreshes an already-loaded instance so the
        caller never decides on stale state.
        """
        return await session.get(
            model, primary_key, with_for_update=True, populate_existing=True
        )


def _enable_sqlite_foreign_keys(dbapi_connection: Any, connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()
