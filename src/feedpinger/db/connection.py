"""
Database connection management using asyncpg.

This module provides:
1. Connection pool management (singleton pattern)
2. Health check utilities

Usage:
    from feedpinger.db import get_db_pool

    pool = await get_db_pool()
    async with pool.acquire() as conn:
        value = await conn.fetchval("SELECT value FROM kv_store WHERE key = $1", key)

    # At shutdown:
    await close_db_pool()

Connection Pool:
- Uses asyncpg.create_pool() for efficient connection reuse
- Pool is created lazily on first use
- Single pool is shared across the application
"""

import asyncpg
import structlog

from feedpinger.config import get_settings

logger = structlog.get_logger()

# Global connection pool (singleton)
_pool: asyncpg.Pool | None = None


async def get_db_pool() -> asyncpg.Pool:
    """
    Get or create the database connection pool.

    The pool is created lazily on first call and reused thereafter.

    Raises:
        asyncpg.PostgresError / OSError: If connection fails
    """
    global _pool

    if _pool is None:
        settings = get_settings()
        logger.info(
            "Creating database connection pool", database_url=settings.database_url[:50] + "..."
        )

        # One checkpoint read and one write per site per run; a small pool is plenty
        _pool = await asyncpg.create_pool(
            settings.database_url,
            min_size=1,
            max_size=5,
            command_timeout=30,
        )

        logger.info("Database pool created", min_size=1, max_size=5)

    return _pool


async def close_db_pool() -> None:
    """
    Close the database connection pool.

    Safe to call even if pool was never created.
    """
    global _pool

    if _pool is not None:
        logger.info("Closing database pool")
        await _pool.close()
        _pool = None
        logger.info("Database pool closed")


async def check_db_health() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        pool = await get_db_pool()
        async with pool.acquire() as conn:
            await conn.fetchval("SELECT 1")
        return True
    except Exception as e:
        logger.error("Database health check failed", error=str(e))
        return False
