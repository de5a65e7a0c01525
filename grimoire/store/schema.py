"""Database schema definitions and storage key constants."""

KV_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS kv (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# Local durable storage keys
WALLET_KEY = "rune_wallet"
ACTIVE_KEY = "active_rune"
SEAL_KEY = "seal_complete"
GRID_KEY = "grid_engine"
ANALYTICS_KEY = "local_analytics"
