"""Async SQLAlchemy engine and session helpers.

Provides a configured async engine, sessionmaker and helper functions for
initializing the account tables and yielding sessions for dependency
injection.
"""

from config.config import settings
from core.logging import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

engine = create_async_engine(
    settings.DATABASE_URL_ASYNC, pool_pre_ping=True, pool_size=5, max_overflow=10
)

AsyncSessionLocal = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)

Base = declarative_base()


async def initialize_database():
    """Create the metadata tables defined on the declarative `Base`.

    Raises:
        Exception: Re-raises any exception encountered while initializing.
    """

    # Register the models on Base.metadata before create_all.
    import models.auth  # noqa: F401

    logger.info("Initializing database tables")
    async with engine.begin() as conn:
        try:
            await conn.run_sync(Base.metadata.create_all)
            logger.info("Database initialization complete")
        except Exception:
            logger.exception("Database initialization failed")
            raise


async def get_db():
    """Yield an async database session for FastAPI dependency injection.

    Usage:
        db: AsyncSession = Depends(get_db)

    Yields:
        AsyncSession: an asynchronous SQLAlchemy session.
    """

    async with AsyncSessionLocal() as session:
        yield session
