# db/database.py

import logging
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from ..config import Settings
from .base import Base

logger = logging.getLogger(__name__)


def _engine_options(database_url: str) -> Dict[str, Any]:
    # SQLite (local/test) runs on the driver's default pool and its
    # CURRENT_TIMESTAMP is already UTC. Postgres gets a bounded pool sized for
    # the hosted instance, and its sessions are pinned to UTC so server-side
    # now() agrees with utcnow().
    if database_url.startswith("sqlite"):
        return {}
    return {
        "pool_size": 15,
        "max_overflow": 0,
        "pool_pre_ping": True,
        "connect_args": {"options": "-c timezone=UTC"},
    }


def build_engine(settings: Settings) -> AsyncEngine:
    """Creates the async engine (psycopg for Postgres, aiosqlite for SQLite)."""
    return create_async_engine(
        settings.database_url,
        echo=settings.sql_echo,
        **_engine_options(settings.database_url),
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False, # Essential for working with ORM objects outside the session
    )


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """
    Creates all defined tables in the database.
    Production schemas should be managed by migrations instead.
    """
    # Import all model modules so that SQLAlchemy knows about them
    from ..models import auto_save_rule, round_up, savings_account, savings_goal  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")
