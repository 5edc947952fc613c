"""
Database connection management for Concord.

Async SQLAlchemy engine and session handling for the archive store.
PostgreSQL (asyncpg) is the production target; SQLite (aiosqlite) works for
development and tests.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine
)
from sqlalchemy.pool import StaticPool

from concord.persistence.models import Base
from concord.utils.exceptions import ConfigurationError, DatabaseError
from concord.utils.logger import get_logger, monitor_performance
from config import settings


class DatabaseManager:
    """
    Manages the archive database engine and sessions.

    ``initialize`` creates the engine, verifies the connection and creates
    tables; ``get_session`` yields a session that commits on success and
    rolls back on error.
    """

    def __init__(self, database_url: Optional[str] = None, echo: Optional[bool] = None):
        self.logger = get_logger("persistence.database")
        self.database_url = database_url or settings.database_url
        self.echo = settings.database_echo if echo is None else echo

        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker] = None
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    @monitor_performance("database_initialization")
    async def initialize(self) -> None:
        """Initialize the engine and create tables."""
        if self._initialized:
            self.logger.warning("Database manager already initialized")
            return

        if not self.database_url:
            raise ConfigurationError(
                "No database URL configured for the archive",
                config_key="CONCORD_DATABASE_URL"
            )

        try:
            self.logger.info("Initializing archive database...")

            engine_kwargs = {"echo": self.echo}
            if self.database_url.startswith("sqlite") and ":memory:" in self.database_url:
                # One shared connection so every session sees the same in-memory database
                engine_kwargs.update(
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False}
                )
            elif not self.database_url.startswith("sqlite"):
                engine_kwargs.update(pool_pre_ping=True, pool_recycle=3600)

            self.engine = create_async_engine(self.database_url, **engine_kwargs)
            self.session_factory = async_sessionmaker(
                bind=self.engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self.engine.begin() as conn:
                await conn.execute(text("SELECT 1"))
                await conn.run_sync(Base.metadata.create_all)

            self._initialized = True
            self.logger.info("Archive database initialized")

        except Exception as e:
            self.logger.error(f"Database initialization failed: {e}", exc_info=True)
            await self.close()
            raise DatabaseError(f"Failed to initialize database: {e}", operation="initialize",
                                original_exception=e) from e

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session."""
        if not self._initialized or self.session_factory is None:
            raise DatabaseError("Database not initialized", operation="get_session")

        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Dispose of the engine."""
        if self.engine is not None:
            await self.engine.dispose()
            self.logger.info("Archive database connection closed")
        self.engine = None
        self.session_factory = None
        self._initialized = False
