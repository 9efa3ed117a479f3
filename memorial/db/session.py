# memorial/db/session.py
"""
Async database session management for SQLAlchemy.

- aiosqlite for SQLite (local development, tests)
- asyncpg for PostgreSQL (production), with a small connection pool

The store is the only shared mutable resource of the service. Moderation
relies on its row-level atomicity (conditional UPDATE), never on
in-process locks.
"""
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, AsyncAdaptedQueuePool

from memorial.core.config import Settings, settings


def create_engine_for(config: Settings) -> AsyncEngine:
    """
    Create and configure the async SQLAlchemy engine.

    SQLite: NullPool, check_same_thread=False.
    PostgreSQL: pooled, pre-ping, connections recycled every 5 minutes.
    """
    if config.is_sqlite:
        return create_async_engine(
            config.DATABASE_URL,
            echo=config.DATABASE_ECHO,
            poolclass=NullPool,
            connect_args={"check_same_thread": False},
        )

    return create_async_engine(
        config.DATABASE_URL,
        echo=config.DATABASE_ECHO,
        poolclass=AsyncAdaptedQueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=300,
    )


def create_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False: attributes stay readable after commit
    # autoflush=False: explicit control over DB writes
    return async_sessionmaker(
        bind=bind,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


engine: AsyncEngine = create_engine_for(settings)

AsyncSessionLocal: async_sessionmaker[AsyncSession] = create_session_factory(engine)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency generator for database sessions.

    One session per request, closed when the request completes. This does
    NOT auto-commit; services commit explicitly.
    """
    async with AsyncSessionLocal() as session:
        yield session
