"""
Database infrastructure configuration

SQLAlchemy async engine and session management for the account store and
the translation audit log.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from c3talk.core.config import settings
from c3talk.models import Base

# Create async engine
engine = create_async_engine(
    settings.database_url,
    echo=settings.db_echo,
    pool_pre_ping=True,  # Automatically detect and disconnect invalid connections
)

# Default session factory; tests inject their own
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def init_models() -> None:
    """Create any missing tables"""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db_connection():
    """Close database connection pool"""
    await engine.dispose()
