"""System-of-record schema definitions and constants."""

from ..analytics import Element

# Exhaustive by construction: one counter column per element.
ELEMENT_COLUMNS = {element: f"element_{element.value}_xp" for element in Element}

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS users (
    user_id TEXT PRIMARY KEY,
    display_name TEXT,
    cumulative_experience INTEGER NOT NULL DEFAULT 0,
    active_talisman_id TEXT,
    birth_data TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS user_analytics (
    user_id TEXT PRIMARY KEY,
    element_fire_xp INTEGER NOT NULL DEFAULT 0,
    element_air_xp INTEGER NOT NULL DEFAULT 0,
    element_water_xp INTEGER NOT NULL DEFAULT 0,
    element_earth_xp INTEGER NOT NULL DEFAULT 0,
    element_spirit_xp INTEGER NOT NULL DEFAULT 0,
    total_session_minutes INTEGER NOT NULL DEFAULT 0,
    rituals_performed_count INTEGER NOT NULL DEFAULT 0,
    daily_activity TEXT NOT NULL DEFAULT '{}',
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS leaderboard_cache (
    rank INTEGER PRIMARY KEY,
    display_name TEXT NOT NULL,
    cumulative_experience INTEGER NOT NULL DEFAULT 0,
    rank_tier INTEGER NOT NULL DEFAULT 0,
    updated_at TEXT NOT NULL
);
"""

INDEXES_SQL = [
    "CREATE INDEX IF NOT EXISTS idx_users_experience ON users(cumulative_experience);",
]
