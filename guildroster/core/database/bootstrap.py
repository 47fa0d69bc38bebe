"""
Schema bootstrap helpers.

Creates or drops every roster table on the engine owned by DatabaseService.
Used by tests and by first-run deployments that do not manage migrations.
"""

from __future__ import annotations

from guildroster.core.database.base import Base
from guildroster.core.database.service import DatabaseService
from guildroster.core.logging.logger import get_logger

# Registers every model on Base.metadata.
import guildroster.database.models  # noqa: F401

logger = get_logger(__name__)


async def create_schema() -> None:
    engine = DatabaseService.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema created", extra={"tables": len(Base.metadata.tables)})


async def drop_schema() -> None:
    engine = DatabaseService.get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    logger.info("Database schema dropped")
