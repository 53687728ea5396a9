"""
matchday/database.py
Async engine and session factory construction
"""
import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from matchday.config import EngineSettings
from matchday.orm.base import Base
import matchday.orm  # noqa: F401  registers every model on Base.metadata

logger = logging.getLogger(__name__)


def build_engine(url: Optional[str] = None, echo: bool = False) -> AsyncEngine:
    """
    Create the async engine.

    SQLite gets a busy timeout so concurrent per-item writes wait for the
    write lock instead of failing immediately.
    """
    url = url or EngineSettings.DATABASE_URL
    if not url:
        raise ValueError("MATCHDAY_DATABASE_URL is not set")

    if "sqlite" in url.lower():
        return create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args={
                "timeout": 30.0,  # SQLite busy timeout in seconds
            },
        )

    return create_async_engine(
        url,
        echo=echo,
        pool_pre_ping=True,
        pool_size=20,
        max_overflow=30,
        pool_timeout=30,
        pool_recycle=3600,
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet. Idempotent."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")
