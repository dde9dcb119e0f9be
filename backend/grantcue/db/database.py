"""Database configuration and session management."""

from functools import lru_cache

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase

from grantcue.config import settings
from grantcue.errors import ConfigurationError


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def create_session_factory(database_url: str, **engine_options) -> async_sessionmaker[AsyncSession]:
    """Build an engine and session factory for the given database URL."""
    if not database_url:
        raise ConfigurationError("DATABASE_URL is not configured")

    engine = create_async_engine(
        database_url,
        echo=settings.debug,
        future=True,
        **engine_options,
    )
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@lru_cache()
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory shared by the API process."""
    return create_session_factory(settings.database_url, pool_pre_ping=True)


def get_engine() -> AsyncEngine:
    return get_session_factory().kw["bind"]


async def get_db() -> AsyncSession:
    """Dependency to get database session."""
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_db(engine: AsyncEngine | None = None):
    """Initialize database tables."""
    # Import all models to register them with Base.metadata
    from grantcue.models import alert, grant, integration, notification, organization, user, webhook  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        # Create tables if they don't exist (preserves data)
        await conn.run_sync(Base.metadata.create_all)
