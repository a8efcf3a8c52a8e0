"""
Async engine, session factory and the request-scoped session dependency.

PostgreSQL (asyncpg) in production, SQLite (aiosqlite) for tests and
local runs. Endpoints own their transaction: services stage changes and
the endpoint commits once, so a request that raises leaves nothing behind.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from taskhub.core.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    options: dict = {"echo": False, "pool_pre_ping": True}
    if url.startswith("postgresql"):
        options.update(pool_size=10, max_overflow=10, pool_recycle=300)
    elif url.startswith("sqlite"):
        options["connect_args"] = {"check_same_thread": False}
    return options


engine = create_async_engine(settings.DATABASE_URL, **_engine_options(settings.DATABASE_URL))

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency — one AsyncSession per request, rolled back on error."""
    async with async_session_factory() as session:
        try:
            yield session
        except Exception:
            logger.debug("Rolling back request session")
            await session.rollback()
            raise
