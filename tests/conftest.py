"""
Pytest configuration for grimoire tests.
"""

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest
import pytest_asyncio

# Add the project root to the Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from grimoire.config import config  # noqa: E402
from grimoire.server import init_records  # noqa: E402
from tests.helpers import SECRET, FixedClock, MemoryStorage  # noqa: E402


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def storage():
    """Empty in-memory key-value storage."""
    return MemoryStorage()


@pytest.fixture
def clock():
    """Controllable clock starting at 2026-03-01 12:00 UTC."""
    return FixedClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest_asyncio.fixture
async def records(tmp_path, monkeypatch):
    """Fresh system-of-record database with a known API secret."""
    monkeypatch.setattr(config, "api_secret", SECRET)
    store = await init_records(str(tmp_path / "records.db"))
    yield store
    await store.close()
