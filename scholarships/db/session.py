"""Database session and engine configuration."""

import logging
from typing import AsyncGenerator

from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from scholarships.config import settings
from scholarships.db.base import Base

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def build_engine(database_url: str = None, **kwargs):
    """Create the async engine; pool sizing only applies to server databases."""
    url = database_url or settings.DATABASE_URL
    options = {"echo": settings.DEBUG, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )
    options.update(kwargs)
    return create_async_engine(url, **options)


def build_session_factory(bind) -> async_sessionmaker:
    """Session factory with the options every service expects."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Create async engine
engine = build_engine()

# Create async session factory
AsyncSessionLocal = build_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db():
    """Initialize database tables."""
    async with engine.begin() as conn:
        # Import all models to register them
        from scholarships.models import application, cycle, history, notification, review  # noqa: F401

        # Create tables (in production, use Alembic migrations)
        if settings.DEBUG:
            logger.info("Creating tables from metadata (DEBUG mode)")
            await conn.run_sync(Base.metadata.create_all)
