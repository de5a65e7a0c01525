"""SQLite-backed key-value store with async writes and sync reads."""

import logging
import sqlite3
from datetime import datetime, timezone
from typing import Dict, Optional

import aiosqlite

from .schema import KV_SCHEMA_SQL

logger = logging.getLogger(__name__)


class SQLiteKeyValueStore:
    """Local durable storage: sync reads (sqlite3) and async writes (aiosqlite).

    Values are opaque strings; callers own their encoding.
    """

    def __init__(self, path: str):
        self.path = path
        self._read_conn: Optional[sqlite3.Connection] = None
        self._write_conn: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Create the table and open connections."""
        self._write_conn = await aiosqlite.connect(self.path)
        await self._write_conn.execute("PRAGMA journal_mode=WAL;")
        await self._write_conn.executescript(KV_SCHEMA_SQL)
        await self._write_conn.commit()

        self._read_conn = sqlite3.connect(self.path)
        self._read_conn.row_factory = sqlite3.Row
        self._read_conn.execute("PRAGMA journal_mode=WAL;")
        self._read_conn.execute("PRAGMA query_only=ON;")

    async def close(self) -> None:
        """Close all database connections."""
        if self._write_conn:
            await self._write_conn.close()
        if self._read_conn:
            self._read_conn.close()

    def get_item(self, key: str) -> Optional[str]:
        row = self._read_conn.execute(
            "SELECT value FROM kv WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else None

    def get_all(self) -> Dict[str, str]:
        rows = self._read_conn.execute("SELECT key, value FROM kv").fetchall()
        return {row["key"]: row["value"] for row in rows}

    async def set_item(self, key: str, value: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        await self._write_conn.execute(
            """INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
               ON CONFLICT(key) DO UPDATE SET value = excluded.value,
               updated_at = excluded.updated_at""",
            (key, value, now),
        )
        await self._write_conn.commit()

    async def remove_item(self, key: str) -> None:
        await self._write_conn.execute("DELETE FROM kv WHERE key = ?", (key,))
        await self._write_conn.commit()
