"""Async engine and session factory construction."""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from permgraph.config import Settings
from permgraph.core.database.base import Base


def create_engine(settings: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    SQLite gets a single shared connection so in-memory databases survive
    across sessions; everything else gets a sized, pre-pinged pool.

    Args:
        settings: Settings providing the database URL and pool sizing

    Returns:
        Async engine
    """
    if settings.is_sqlite:
        return create_async_engine(
            settings.database_url,
            echo=settings.database_echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        settings.database_url,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        echo=settings.database_echo,
        pool_pre_ping=True,  # Verify connections before use
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create all permission tables that do not exist yet."""
    # Import models so they're registered with Base.metadata
    from permgraph.core.permissions import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop all permission tables."""
    from permgraph.core.permissions import models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
