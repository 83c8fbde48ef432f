"""Database engine management."""

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlmodel import SQLModel

from efsbroker.app.config import StoreConfig
from efsbroker.core.logging_schema import LogEvent

logger = logging.getLogger(__name__)


def create_engine(config: StoreConfig) -> AsyncEngine:
    """Create async engine for the state store.

    Pool sizing only applies to pooled drivers (asyncpg); sqlite
    ignores it.
    """
    url = config.database_url
    kwargs: dict = {"echo": config.echo, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=config.pool_size,
            max_overflow=config.max_overflow,
            pool_recycle=3600,
        )
    return create_async_engine(url, **kwargs)


async def init_db(engine: AsyncEngine) -> None:
    """Verify connectivity and create state tables if they don't exist."""
    # Register table metadata
    from efsbroker.infra import models  # noqa: F401

    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            await conn.run_sync(SQLModel.metadata.create_all)
        logger.info(
            "Database connected",
            extra={"event": LogEvent.DB_CONNECTED, "dialect": engine.dialect.name},
        )
    except Exception as e:
        logger.error(
            "Database connection failed",
            extra={
                "event": LogEvent.DB_ERROR,
                "error_type": type(e).__name__,
                "error": str(e),
            },
        )
        raise


async def close_db(engine: AsyncEngine) -> None:
    await engine.dispose()
