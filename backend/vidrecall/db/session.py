"""
Database Session Management

Engines and session factories are built explicitly by the host application
and handed to the SQL-backed store and history sink; nothing connects at
import time.

Architecture Flow:
------------------
Application Start → create_engine() → create_session_factory(engine)
↓
Store call → open session → execute → commit/rollback → close
↓
Application Shutdown → engine.dispose()

Schema changes go through the Alembic migrations in ``alembic/versions``.
"""

from typing import Any, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import AsyncAdaptedQueuePool, NullPool

from vidrecall.core.config import Settings, settings as default_settings
from vidrecall.core.exceptions import ConfigurationError
from vidrecall.core.logging import get_logger

logger = get_logger(__name__)


# ================================
# Engine Configuration
# ================================

def get_engine_config(settings: Optional[Settings] = None) -> dict[str, Any]:
    """
    Configure the database engine based on environment.

    Development and production keep a connection pool
    (pool_size + max_overflow from settings); staging uses NullPool so
    every connection is fresh.

    Args:
        settings: Settings to read (default: the global settings)
    """
    settings = settings or default_settings

    config: dict[str, Any] = {
        "echo": settings.DB_ECHO,
        "pool_pre_ping": True,
    }

    if settings.is_development or settings.is_production:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
        )
        config.update({
            "poolclass": AsyncAdaptedQueuePool,
            "pool_size": settings.DB_POOL_SIZE,
            "max_overflow": settings.DB_MAX_OVERFLOW,
            "pool_recycle": 7200 if settings.is_production else 3600,
            "pool_timeout": 30,
        })
    else:
        logger.info(
            "configuring_database_engine",
            environment=settings.APP_ENV,
            pool_type="NullPool",
        )
        config["poolclass"] = NullPool

    return config


def create_engine(database_url: Optional[str] = None, settings: Optional[Settings] = None) -> AsyncEngine:
    """
    Create the async database engine.

    Args:
        database_url: Connection string (default from settings.DATABASE_URL)
        settings: Settings to read (default: the global settings)

    Raises:
        ConfigurationError: If no database URL is configured
    """
    settings = settings or default_settings
    url = database_url or settings.DATABASE_URL
    if not url:
        raise ConfigurationError("DATABASE_URL is not configured")

    return create_async_engine(url, **get_engine_config(settings))


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Build the session factory used by the SQL store and history sink."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


# ================================
# Database Health Check
# ================================

async def check_db_health(engine: AsyncEngine) -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True

    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
        return False
