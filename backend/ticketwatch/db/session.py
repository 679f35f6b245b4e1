"""Database session management."""

from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ticketwatch.config import get_settings
from ticketwatch.db.models import Base

settings = get_settings()


def get_engine_options(database_url: str) -> dict:
    """
    Engine keyword arguments for the configured backend.

    SQLite (the default) manages its own pool, so pool sizing only applies
    to server databases such as PostgreSQL via asyncpg.
    """
    options: dict = {"echo": settings.debug}
    if make_url(database_url).get_backend_name() == "sqlite":
        return options

    options.update(
        pool_pre_ping=True,
        pool_size=3,
        max_overflow=5,
        pool_timeout=60,
        pool_recycle=300,
    )
    return options


engine: AsyncEngine = create_async_engine(
    settings.database_url,
    **get_engine_options(settings.database_url),
)

# Session factory
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create tables that don't exist yet."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database session."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
