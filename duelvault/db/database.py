"""
Database engine and session management.

One async engine per process holds the card cache, collections and decks.
Production runs on PostgreSQL (asyncpg); local runs may point
DATABASE_URL at SQLite (aiosqlite).
"""

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from duelvault.config import settings
from duelvault.models.db import Base

logger = logging.getLogger(__name__)


def build_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """
    Async engine for a database URL.

    An in-memory SQLite database lives and dies with its connection, so it
    gets one shared connection. Server databases get a pre-pinged pool.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite" and url.database in (None, "", ":memory:"):
        return create_async_engine(url, echo=echo, poolclass=StaticPool)
    return create_async_engine(url, echo=echo, pool_pre_ping=True)


engine = build_engine(settings.database_url, echo=settings.debug)

session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session.

    The session commits when the request handler returns. A database error
    rolls back everything the request wrote, including deck saves.
    """
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError:
            logger.warning("Rolling back request session after a database error")
            await session.rollback()
            raise


async def init_db(target: AsyncEngine | None = None) -> None:
    """Create the card, collection and deck tables that do not exist yet."""
    async with (target or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database ready", extra={"tables": sorted(Base.metadata.tables)})
