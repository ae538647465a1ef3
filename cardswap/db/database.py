"""
Async store wiring.

One engine per process. Request handlers get a session through
``get_session``; jobs open their own from ``async_session_factory``.
Objects stay usable after commit, since trade completion commits the status
change before settling inventory on the same session.
"""

from collections.abc import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from cardswap.config import settings
from cardswap.models.db import Base

engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)

async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Request-scoped session.

    Whatever the handler left pending is committed once it returns. A store
    error rolls the request back and propagates to the upstream-error handler.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Run at API startup and before catalog sync."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
