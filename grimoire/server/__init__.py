"""System-of-record server: SQLite records behind a FastAPI app."""

from typing import Optional

from .records_store import RecordsStore

__all__ = [
    "RecordsStore",
    "init_records",
    "get_records",
]

records: Optional[RecordsStore] = None


async def init_records(data_file: str) -> RecordsStore:
    """Initialize the global records store (async, creates tables)."""
    global records
    records = RecordsStore(data_file)
    await records.initialize()
    return records


def get_records() -> RecordsStore:
    """Get the global records store instance."""
    if records is None:
        raise RuntimeError("Records store not initialized. Call init_records() first.")
    return records
