"""Database base configuration for async SQLAlchemy with SQLModel.

This module provides:
- Engine configuration per environment
- The shared session factory
- Schema creation
- Health check functionality
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool
from sqlalchemy.sql import text
from sqlmodel import SQLModel

from shorty.core.config import settings

logger = logging.getLogger(__name__)

ENGINE_CONFIGS: Dict[str, Dict] = {
    "development": {
        "echo": settings.DB_ECHO,
        "pool_size": settings.POSTGRES_POOL_SIZE,
        "max_overflow": settings.POSTGRES_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.POSTGRES_POOL_TIMEOUT,
        "pool_recycle": settings.POSTGRES_POOL_RECYCLE,
        "pool_pre_ping": True,
    },
    "production": {
        "echo": False,
        "pool_size": settings.POSTGRES_POOL_SIZE,
        "max_overflow": settings.POSTGRES_POOL_MAX_OVERFLOW,
        "pool_timeout": settings.POSTGRES_POOL_TIMEOUT,
        "pool_recycle": settings.POSTGRES_POOL_RECYCLE,
        "pool_pre_ping": True,
    },
    "testing": {
        "echo": False,
        "poolclass": NullPool,
    },
}


def get_engine_config(url: str) -> Dict:
    """Get the engine configuration for the current environment.

    SQLite has no server-side pool, so it always runs on NullPool.
    """
    if url.startswith("sqlite"):
        return {"echo": settings.DB_ECHO, "poolclass": NullPool}
    env = settings.ENVIRONMENT.value
    return ENGINE_CONFIGS.get(env, ENGINE_CONFIGS["development"])


def enable_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    """Turn on FK enforcement (and so ON DELETE CASCADE) for SQLite connections."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def get_engine(url: str = None) -> AsyncEngine:
    """Create and configure an async SQLAlchemy engine.

    Returns:
        AsyncEngine: Configured SQLAlchemy async engine instance.
    """
    engine_url = url or str(settings.SQLALCHEMY_DATABASE_URI)
    engine = create_async_engine(engine_url, **get_engine_config(engine_url))
    enable_sqlite_foreign_keys(engine)
    logger.info(f"Created database engine for dialect {engine.dialect.name}")
    return engine


# Shared async engine instance
engine = get_engine()

# Async session factory
async_session_factory = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get an async session that is always closed afterwards."""
    session = async_session_factory()
    try:
        yield session
    finally:
        await session.close()


async def create_db_and_tables(bind: AsyncEngine = None) -> None:
    """Create every table registered on SQLModel metadata."""
    # Register table models
    import shorty.models  # noqa: F401

    async with (bind or engine).begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info("Database schema ensured")


class DatabaseHealthCheck:
    """Health check functionality for the database connection."""

    @staticmethod
    async def check_connection() -> Dict:
        """Check database connectivity and return status with latency."""
        start_time = asyncio.get_running_loop().time()
        status = "healthy"
        error_message = None
        latency_ms = 0

        try:
            async with async_session_factory() as session:
                await session.execute(text("SELECT 1"))
            latency_ms = int((asyncio.get_running_loop().time() - start_time) * 1000)
        except Exception as e:
            status = "unhealthy"
            error_message = str(e)
            logger.error(f"Database health check failed: {e}")

        return {
            "status": status,
            "latency_ms": latency_ms,
            "error": error_message,
        }
