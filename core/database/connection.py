# Async database connection and session management
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool

from core.logging import get_database_logger_safe, get_error_logger_safe

# Initialize specialized loggers
db_logger = get_database_logger_safe("database_manager")
error_logger = get_error_logger_safe("database_manager")

# The base class for all SQLAlchemy models
Base = declarative_base()


def _engine_options(db_url: str, echo: bool) -> dict:
    """Pool configuration per backend."""
    url = make_url(db_url)
    if url.get_backend_name() == "sqlite":
        options = {"echo": echo, "connect_args": {"check_same_thread": False}}
        if url.database in (None, "", ":memory:"):
            # A single shared connection keeps an in-memory database alive
            options["poolclass"] = StaticPool
        return options
    return {
        "echo": echo,
        "pool_pre_ping": True,  # Test connections before use
        "pool_size": 10,
        "max_overflow": 20,
        "pool_recycle": 3600,  # Recycle connections after 1 hour
    }


class DatabaseManager:
    """Owns the async engine and hands out sessions to services"""

    def __init__(self, db_url: str, environment: str = "development",
                 schema_management: str = "auto", echo: bool = False):
        self._engine = create_async_engine(db_url, **_engine_options(db_url, echo))
        self._session_factory = async_sessionmaker(
            self._engine,
            expire_on_commit=False,
            class_=AsyncSession
        )
        self._environment = environment
        self._schema_management = schema_management

    @property
    def engine(self):
        return self._engine

    async def init(self) -> None:
        """Create tables unless schema management is switched off"""
        if self._schema_management == "skip":
            db_logger.info("Schema management skipped", environment=self._environment)
            return

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        db_logger.info("Database initialized with create_all",
                       environment=self._environment)

    async def verify_connection(self) -> bool:
        """Verify database connection is ready"""
        try:
            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))
                return True
        except Exception as e:
            error_logger.error("Database connection verification failed", error=str(e))
            return False

    async def shutdown(self) -> None:
        """Closes the database connection pool"""
        await self._engine.dispose()
        db_logger.info("Database connection pool closed")

    @asynccontextmanager
    async def get_session(self) -> AsyncIterator[AsyncSession]:
        """Provides a new database session context manager WITHOUT auto-commit.

        Services own their transaction boundaries; on error the session is
        rolled back before the exception propagates.
        """
        session_start_time = time.time()
        async with self._session_factory() as session:
            try:
                yield session
            except Exception as session_error:
                await session.rollback()
                error_logger.error("Database session error with rollback",
                                   error=str(session_error),
                                   session_duration_ms=(time.time() - session_start_time) * 1000,
                                   environment=self._environment)
                raise
            finally:
                db_logger.debug("Database session closed",
                                session_duration_ms=(time.time() - session_start_time) * 1000)

