"""
Key-value store backends.

The notifier only needs get/set of string values by string key:
- checkpoints ("last_check_<site id>" -> ISO timestamp)
- the stored site-config record ("site_configs" -> JSON array)

PostgresKeyValueStore keeps them in a single kv_store table (see setup_db.py).
InMemoryKeyValueStore is used by tests and by `store_backend=memory` dry runs.
"""

from typing import Protocol

import asyncpg
import structlog

from feedpinger.config import Settings
from feedpinger.db.connection import get_db_pool

logger = structlog.get_logger()


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(self, key: str, value: str) -> None: ...


GET_VALUE_SQL = """
SELECT value FROM kv_store WHERE key = $1;
"""

# Upsert: INSERT if the key is new, otherwise overwrite the value
SET_VALUE_SQL = """
INSERT INTO kv_store (key, value, updated_at)
VALUES ($1, $2, NOW())
ON CONFLICT (key) DO UPDATE SET
    value = EXCLUDED.value,
    updated_at = NOW();
"""


class PostgresKeyValueStore:
    """KeyValueStore backed by the kv_store table."""

    def __init__(self, pool: asyncpg.Pool):
        self._pool = pool

    async def get(self, key: str) -> str | None:
        async with self._pool.acquire() as conn:
            return await conn.fetchval(GET_VALUE_SQL, key)

    async def set(self, key: str, value: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(SET_VALUE_SQL, key, value)
        logger.debug("Stored value", key=key)


class InMemoryKeyValueStore:
    """Process-local KeyValueStore. Not durable."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.data: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self.data[key] = value


# Shared by every run in this process when store_backend=memory
_memory_store: InMemoryKeyValueStore | None = None


async def get_kv_store(settings: Settings) -> KeyValueStore:
    """Return the configured KeyValueStore backend."""
    global _memory_store

    if settings.store_backend == "memory":
        if _memory_store is None:
            logger.warning("Using in-memory key-value store, checkpoints will not survive restarts")
            _memory_store = InMemoryKeyValueStore()
        return _memory_store

    return PostgresKeyValueStore(await get_db_pool())
