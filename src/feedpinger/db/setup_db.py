"""
Database schema setup script.

Creates the kv_store table that holds checkpoints and the stored
site-config record.

Run with:
    python -m feedpinger.db.setup_db
"""

import asyncio

import structlog

from feedpinger.db.checkpoints import LAST_CHECK_KEY_PREFIX
from feedpinger.db.connection import close_db_pool, get_db_pool

logger = structlog.get_logger()


# ============================================================
# SQL SCHEMA DEFINITIONS
# ============================================================

CREATE_KV_STORE_SQL = """
CREATE TABLE IF NOT EXISTS kv_store (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
);
"""


# ============================================================
# SETUP FUNCTIONS
# ============================================================


async def setup_database() -> None:
    """
    Set up the database schema.

    Safe to run multiple times (uses IF NOT EXISTS).
    """
    logger.info("Setting up database schema")

    pool = await get_db_pool()

    async with pool.acquire() as conn:
        logger.info("Creating kv_store table")
        await conn.execute(CREATE_KV_STORE_SQL)

    logger.info("Database schema setup complete")


async def get_table_stats() -> dict:
    """Count stored keys, split into checkpoints and everything else."""
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        total = await conn.fetchval("SELECT COUNT(*) FROM kv_store")
        checkpoints = await conn.fetchval(
            "SELECT COUNT(*) FROM kv_store WHERE key LIKE $1",
            LAST_CHECK_KEY_PREFIX + "%",
        )

    return {
        "keys": total,
        "checkpoints": checkpoints,
    }


async def main() -> None:
    """Main entry point for running schema setup."""
    try:
        await setup_database()
        stats = await get_table_stats()
        logger.info("Database ready", **stats)
    finally:
        await close_db_pool()


if __name__ == "__main__":
    asyncio.run(main())
