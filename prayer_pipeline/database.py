"""
Async engine, session factory and schema management.

Services never create sessions themselves: they open a unit of work with
get_db_session(). Tests swap async_session_maker for one bound to SQLite.
"""
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from prayer_pipeline.config import settings
from prayer_pipeline.logging_config import get_logger
from prayer_pipeline.models import Base

logger = get_logger(__name__)

_engine_options = {"echo": settings.debug}
# SQLite (tests, local runs) uses its own pool and rejects the sizing options
if not settings.is_sqlite:
    _engine_options.update(
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=3600,
    )

engine = create_async_engine(settings.database_url, **_engine_options)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for a unit of work.

    Everything done inside the block commits together on exit, or is rolled
    back together if the block raises.

    Usage:
        async with get_db_session() as session:
            result = await session.execute(query)
    """
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db():
    """Create tables that do not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("database_initialized", url=engine.url.render_as_string(hide_password=True))


async def drop_tables():
    """Drop all tables from the database."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


async def close_db():
    """Close database connections."""
    await engine.dispose()
    logger.info("database_connections_closed")
