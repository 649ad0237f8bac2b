"""
Database engine and session management for the relational token store.

Provides:
- Async engine creation with driver-appropriate configuration
- Session factory bound to that engine
- Idempotent table creation (CREATE TABLE IF NOT EXISTS)
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.schema import CreateTable

from src.config import Settings

logger = logging.getLogger(__name__)


def create_store_engine(
    database_url: str,
    echo: bool = False,
    timeout_seconds: float = 10.0,
    ssl: Optional[str] = None,
) -> AsyncEngine:
    """
    Create an async engine for the token store.

    Args:
        database_url: Async database URL (postgresql+asyncpg:// or sqlite+aiosqlite://)
        echo: Log SQL statements
        timeout_seconds: Connect timeout handed to the driver
        ssl: asyncpg ssl mode, passed through when set

    Returns:
        AsyncEngine
    """
    if "sqlite" in database_url.lower():
        return create_async_engine(
            database_url,
            echo=echo,
            connect_args={"timeout": timeout_seconds},
        )

    connect_args: dict = {"timeout": timeout_seconds}
    if ssl:
        connect_args["ssl"] = ssl

    return create_async_engine(
        database_url,
        pool_size=5,  # Maximum number of connections in pool
        pool_recycle=3600,  # Recycle connections after 1 hour
        pool_pre_ping=True,  # Test connections before using them
        pool_timeout=timeout_seconds,
        echo=echo,
        connect_args=connect_args,
    )


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the token store engine from application settings."""
    return create_store_engine(
        settings.async_database_url,
        echo=settings.log_level == "DEBUG",
        timeout_seconds=settings.store_timeout_seconds,
        ssl=settings.pgsslmode or None,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory with explicit commits."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        autoflush=False,
        expire_on_commit=False,
    )


async def init_db(engine: AsyncEngine) -> None:
    """
    Create the token table if it does not exist.

    Safe to run on every startup and from several processes at once.
    In managed deployments `alembic upgrade head` creates the same table.
    """
    from src.models.tokens import UserToken

    async with engine.begin() as conn:
        await conn.execute(CreateTable(UserToken.__table__, if_not_exists=True))
    logger.info("Token table ready")
