"""Store package: SQLite-backed local key-value storage."""

from typing import Optional

from .kv_store import SQLiteKeyValueStore
from .schema import ACTIVE_KEY, ANALYTICS_KEY, GRID_KEY, SEAL_KEY, WALLET_KEY

__all__ = [
    "SQLiteKeyValueStore",
    "init_store",
    "get_store",
    "WALLET_KEY",
    "ACTIVE_KEY",
    "SEAL_KEY",
    "GRID_KEY",
    "ANALYTICS_KEY",
]

store: Optional[SQLiteKeyValueStore] = None


async def init_store(data_file: str) -> SQLiteKeyValueStore:
    """Initialize the global store (async, creates tables)."""
    global store
    store = SQLiteKeyValueStore(data_file)
    await store.initialize()
    return store


def get_store() -> SQLiteKeyValueStore:
    """Get the global store instance."""
    if store is None:
        raise RuntimeError("Store not initialized. Call init_store() first.")
    return store
