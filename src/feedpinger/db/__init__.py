"""Persistence for checkpoints and stored site configurations."""

from feedpinger.db.checkpoints import CheckpointStore
from feedpinger.db.connection import close_db_pool, get_db_pool
from feedpinger.db.kv_store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    PostgresKeyValueStore,
    get_kv_store,
)

__all__ = [
    "get_db_pool",
    "close_db_pool",
    "CheckpointStore",
    "KeyValueStore",
    "PostgresKeyValueStore",
    "InMemoryKeyValueStore",
    "get_kv_store",
]
