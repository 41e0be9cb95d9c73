"""Async engine and session factory for the catalog.

The backend is chosen by the database URL: ``sqlite+aiosqlite`` for an
embedded file, ``postgresql+asyncpg`` for a networked server.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from pixvault.config import DatabaseConfig
from pixvault.db.base import Base


def create_engine(config: DatabaseConfig) -> AsyncEngine:
    """Build the SQLAlchemy async engine; pool options apply to servers only."""
    if "sqlite" in config.url:
        return create_async_engine(config.url, echo=config.echo)

    return create_async_engine(
        config.url,
        pool_size=config.pool_size,
        max_overflow=config.pool_overflow,
        pool_timeout=config.pool_timeout,
        pool_pre_ping=config.pool_pre_ping,
        echo=config.echo,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


async def create_schema(engine: AsyncEngine) -> None:
    """Create catalog tables that do not exist yet."""
    # Register models on the metadata before create_all
    from pixvault.db import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
