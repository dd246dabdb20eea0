#!/usr/bin/env python3
"""
Database initialization script for the meetings service.
Run this to create the required database tables.
"""
import asyncio
import sys

from prayer_pipeline.config import settings
from prayer_pipeline.database import init_db, drop_tables, close_db
from prayer_pipeline.logging_config import setup_logging, get_logger
from prayer_pipeline.models import Base

logger = get_logger(__name__)


async def create():
    """Create any missing tables."""
    try:
        await init_db()
        logger.info("tables_ready", tables=sorted(Base.metadata.tables))
    finally:
        await close_db()


async def reset():
    """Drop and recreate all tables. WARNING: This deletes all data!"""
    response = input("This will DELETE ALL DATA. Continue? (yes/no): ")
    if response.lower() != "yes":
        logger.info("reset_cancelled")
        return

    try:
        await drop_tables()
        logger.info("tables_dropped")
        await init_db()
        logger.info("database_reset")
    finally:
        await close_db()


if __name__ == "__main__":
    setup_logging(settings.debug)
    if len(sys.argv) > 1 and sys.argv[1] == "--reset":
        asyncio.run(reset())
    else:
        asyncio.run(create())
