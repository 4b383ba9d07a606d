#!/usr/bin/env python3
"""
Create the farmscout schema, tables and indexes.

Safe to re-run: every statement in db/schema.sql is idempotent.

Usage:
    uv run python -m workflows.bootstrap_db
"""

import asyncio
import os
import sys

from loguru import logger

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from db.client import SCHEMA, apply_schema, close_db, init_db


async def bootstrap_db_workflow() -> None:
    """Apply db/schema.sql against the configured database."""
    await apply_schema()
    logger.success(f"Schema '{SCHEMA}' is up to date")


async def main():
    logger.remove()
    logger.add(sys.stderr, level="INFO", format="<level>{level: <8}</level> | {message}")

    await init_db()
    try:
        await bootstrap_db_workflow()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
