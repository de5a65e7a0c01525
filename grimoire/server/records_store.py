"""SQLite-backed system of record with async writes and sync reads."""

import asyncio
import json
import logging
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

import aiosqlite

from .. import analytics
from ..analytics import AnalyticsRecord, Element, ProgressionRecord
from ..leaderboard import LEADERBOARD_SIZE, LeaderboardCache, LeaderboardEntry, ProgressionSnapshot
from .schema import ELEMENT_COLUMNS, INDEXES_SQL, SCHEMA_SQL

logger = logging.getLogger(__name__)


class RecordsStore:
    """Holds every user's progression and analytics, plus the leaderboard cache."""

    def __init__(self, path: str):
        self.path = path
        self._read_conn: Optional[sqlite3.Connection] = None
        self._write_conn: Optional[aiosqlite.Connection] = None
        self.leaderboard = LeaderboardCache()
        self._user_locks: Dict[str, asyncio.Lock] = {}

    async def initialize(self) -> None:
        """Create tables, indexes, and open connections."""
        self._write_conn = await aiosqlite.connect(self.path)
        await self._write_conn.execute("PRAGMA journal_mode=WAL;")
        await self._write_conn.executescript(SCHEMA_SQL)
        for idx_sql in INDEXES_SQL:
            await self._write_conn.execute(idx_sql)
        await self._write_conn.commit()

        self._read_conn = sqlite3.connect(self.path)
        self._read_conn.row_factory = sqlite3.Row
        self._read_conn.execute("PRAGMA journal_mode=WAL;")
        self._read_conn.execute("PRAGMA query_only=ON;")

        self.leaderboard.load(self._read_leaderboard_rows())

    async def close(self) -> None:
        """Close all database connections."""
        if self._write_conn:
            await self._write_conn.close()
        if self._read_conn:
            self._read_conn.close()

    # ---- helpers ----

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _fetchone_user(self, user_id: str) -> Optional[sqlite3.Row]:
        cur = self._read_conn.execute(
            "SELECT * FROM users WHERE user_id = ?", (user_id,)
        )
        return cur.fetchone()

    def _row_to_analytics(self, row: sqlite3.Row) -> AnalyticsRecord:
        return AnalyticsRecord(
            element_xp={element: row[column] for element, column in ELEMENT_COLUMNS.items()},
            total_session_minutes=row["total_session_minutes"],
            rituals_performed_count=row["rituals_performed_count"],
            daily_activity=json.loads(row["daily_activity"] or "{}"),
        )

    async def ensure_user(self, user_id: str) -> None:
        """Create the user and analytics rows on first contact."""
        now = self._now()
        await self._write_conn.execute(
            """INSERT OR IGNORE INTO users (user_id, created_at, updated_at)
               VALUES (?, ?, ?)""",
            (user_id, now, now),
        )
        await self._write_conn.execute(
            """INSERT OR IGNORE INTO user_analytics (user_id, daily_activity, updated_at)
               VALUES (?, '{}', ?)""",
            (user_id, now),
        )
        await self._write_conn.commit()

    # ---- Profile ----

    def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        row = self._fetchone_user(user_id)
        if not row:
            return None
        d = dict(row)
        d["birth_data"] = json.loads(d["birth_data"]) if d["birth_data"] else None
        return d

    def get_progression(self, user_id: str) -> ProgressionRecord:
        row = self._fetchone_user(user_id)
        return ProgressionRecord(row["cumulative_experience"] if row else 0)

    def get_profile(self, user_id: str, today: Optional[datetime] = None) -> Optional[Dict[str, Any]]:
        user = self.get_user(user_id)
        if not user:
            return None
        progression = ProgressionRecord(user["cumulative_experience"])
        record = self.get_analytics(user_id) or analytics.create_analytics()
        return {
            "display_name": user["display_name"],
            "rank": progression.rank,
            "cumulative_experience": progression.cumulative_experience,
            "streak": analytics.current_streak(record, today or datetime.now(timezone.utc)),
            "active_talisman_id": user["active_talisman_id"],
            "birth_data": user["birth_data"],
        }

    async def set_display_name(self, user_id: str, display_name: str) -> bool:
        cur = await self._write_conn.execute(
            "UPDATE users SET display_name = ?, updated_at = ? WHERE user_id = ?",
            (display_name.strip(), self._now(), user_id),
        )
        await self._write_conn.commit()
        return cur.rowcount > 0

    async def set_active_talisman(self, user_id: str, talisman_id: Optional[str]) -> bool:
        cur = await self._write_conn.execute(
            "UPDATE users SET active_talisman_id = ?, updated_at = ? WHERE user_id = ?",
            (talisman_id, self._now(), user_id),
        )
        await self._write_conn.commit()
        return cur.rowcount > 0

    async def set_birth_data(self, user_id: str, birth_data: Dict[str, Any]) -> bool:
        cur = await self._write_conn.execute(
            "UPDATE users SET birth_data = ?, updated_at = ? WHERE user_id = ?",
            (json.dumps(birth_data), self._now(), user_id),
        )
        await self._write_conn.commit()
        return cur.rowcount > 0

    # ---- Experience ----

    async def add_experience(self, user_id: str, amount: int) -> ProgressionRecord:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValueError(f"amount must be a positive integer, got {amount!r}")
        await self._write_conn.execute(
            """UPDATE users SET cumulative_experience = cumulative_experience + ?,
               updated_at = ? WHERE user_id = ?""",
            (amount, self._now(), user_id),
        )
        await self._write_conn.commit()
        return self.get_progression(user_id)

    # ---- Analytics ----

    def get_analytics(self, user_id: str) -> Optional[AnalyticsRecord]:
        row = self._read_conn.execute(
            "SELECT * FROM user_analytics WHERE user_id = ?", (user_id,)
        ).fetchone()
        return self._row_to_analytics(row) if row else None

    async def get_or_create_analytics(self, user_id: str) -> AnalyticsRecord:
        record = self.get_analytics(user_id)
        if record is not None:
            return record
        await self.ensure_user(user_id)
        return self.get_analytics(user_id) or analytics.create_analytics()

    def _user_lock(self, user_id: str) -> asyncio.Lock:
        """Lock serialising the daily-activity merge for one user."""
        if user_id not in self._user_locks:
            self._user_locks[user_id] = asyncio.Lock()
        return self._user_locks[user_id]

    async def _apply_delta(
        self,
        user_id: str,
        delta: AnalyticsRecord,
        experience: int,
        at: Optional[datetime],
    ) -> ProgressionRecord:
        """Add ``delta`` and ``experience`` to the stored record.

        Counters use ``col = col + ?`` so overlapping requests never overwrite
        each other. The daily-activity JSON has no atomic form and is merged
        under the user's lock.
        """
        await self.get_or_create_analytics(user_id)
        sets = [f"{column} = {column} + ?" for column in ELEMENT_COLUMNS.values()]
        params: list = [delta.element_xp.get(element, 0) for element in ELEMENT_COLUMNS]
        sets += [
            "total_session_minutes = total_session_minutes + ?",
            "rituals_performed_count = rituals_performed_count + ?",
            "daily_activity = ?",
            "updated_at = ?",
        ]
        now = self._now()

        async with self._user_lock(user_id):
            record = self.get_analytics(user_id) or analytics.create_analytics()
            for key, value in delta.daily_activity.items():
                record.daily_activity[key] = record.daily_activity.get(key, 0) + value
            analytics.prune_daily_activity(record, at or datetime.now(timezone.utc))

            params += [
                delta.total_session_minutes,
                delta.rituals_performed_count,
                json.dumps(record.daily_activity, sort_keys=True),
                now,
                user_id,
            ]
            await self._write_conn.execute(
                f"UPDATE user_analytics SET {', '.join(sets)} WHERE user_id = ?", params
            )
            await self._write_conn.execute(
                """UPDATE users SET cumulative_experience = cumulative_experience + ?,
                   updated_at = ? WHERE user_id = ?""",
                (experience, now, user_id),
            )
            await self._write_conn.commit()
        return self.get_progression(user_id)

    async def record_ritual(
        self,
        user_id: str,
        elements: Iterable[Element],
        xp_amount: int,
        at: Optional[datetime] = None,
    ) -> ProgressionRecord:
        delta = analytics.create_analytics()
        gained = ProgressionRecord()
        analytics.record_ritual(delta, gained, elements, xp_amount, at)
        return await self._apply_delta(user_id, delta, gained.cumulative_experience, at)

    async def record_session(
        self,
        user_id: str,
        minutes: int,
        at: Optional[datetime] = None,
    ) -> ProgressionRecord:
        delta = analytics.create_analytics()
        gained = ProgressionRecord()
        analytics.record_session(delta, gained, minutes, at)
        return await self._apply_delta(user_id, delta, gained.cumulative_experience, at)

    # ---- Leaderboard ----

    def progression_snapshots(self) -> List[ProgressionSnapshot]:
        rows = self._read_conn.execute(
            "SELECT display_name, cumulative_experience FROM users"
        ).fetchall()
        return [
            ProgressionSnapshot(row["display_name"], row["cumulative_experience"])
            for row in rows
        ]

    def _read_leaderboard_rows(self) -> List[LeaderboardEntry]:
        rows = self._read_conn.execute(
            "SELECT rank, display_name, cumulative_experience, rank_tier "
            "FROM leaderboard_cache ORDER BY rank"
        ).fetchall()
        return [
            LeaderboardEntry(
                rank=row["rank"],
                display_name=row["display_name"],
                cumulative_experience=row["cumulative_experience"],
                rank_tier=row["rank_tier"],
            )
            for row in rows
        ]

    async def refresh_leaderboard(self) -> List[LeaderboardEntry]:
        """Clear and rebuild the cached leaderboard from every user."""
        entries = self.leaderboard.rebuild(self.progression_snapshots())
        now = self._now()
        await self._write_conn.execute("DELETE FROM leaderboard_cache")
        await self._write_conn.executemany(
            """INSERT INTO leaderboard_cache
               (rank, display_name, cumulative_experience, rank_tier, updated_at)
               VALUES (?, ?, ?, ?, ?)""",
            [
                (e.rank, e.display_name, e.cumulative_experience, e.rank_tier, now)
                for e in entries
            ],
        )
        await self._write_conn.commit()
        return entries

    def get_leaderboard(self, limit: int = LEADERBOARD_SIZE) -> List[LeaderboardEntry]:
        return self.leaderboard.top(limit)
