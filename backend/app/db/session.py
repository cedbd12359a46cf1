"""
Database session management module.

One engine per process; each request gets its own AsyncSession through the
``get_db`` dependency, and every statement of a request runs in that
session's transaction.
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession
from sqlalchemy.orm import sessionmaker

from app.core.config import settings

DATABASE_URL = settings.DATABASE_URL


def build_engine(url: str, **kwargs):
    """
    Create the async engine, with pool settings only for Postgres.
    """
    if url.startswith("postgresql"):
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("max_overflow", 20)
        kwargs.setdefault("pool_timeout", 30)
        kwargs.setdefault("pool_recycle", 1800)
        kwargs.setdefault(
            "connect_args",
            {"server_settings": {"statement_timeout": str(settings.DB_STATEMENT_TIMEOUT_MS)}},
        )
    return create_async_engine(url, **kwargs)


# Create SQLAlchemy engine
engine = build_engine(DATABASE_URL)

# Create session factory
SessionLocal = sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Get database session.
    Handles commit on success and rollback on failure.

    Yields:
        AsyncSession: Database session
    """
    async with SessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
