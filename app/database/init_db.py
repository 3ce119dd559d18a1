"""
init_db.py

Initializes the database by creating all tables defined in the SQLAlchemy models.
Used for setting up the initial schema in the connected database.

Usage: python -m app.database.init_db
"""

import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine

from app.database.base import Base
from app.database.models import User  # noqa: F401  registers every model on Base.metadata
from app.database.session import engine

logger = logging.getLogger(__name__)


async def init_db(bind: AsyncEngine = engine) -> None:
    """
    Creates all database tables based on SQLAlchemy models.
    """
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"[DB] Created {len(Base.metadata.tables)} tables")


if __name__ == "__main__":
    asyncio.run(init_db())
