"""
Shared test doubles: in-memory storage, failing storage, fixed clock and
HTTP clients wired to the in-process API.
"""

from datetime import datetime, timedelta
from typing import Dict, List, Optional

import httpx

from grimoire.server.webapp import app
from grimoire.sync import RemoteSync
from grimoire.utils import sign_user_id

SECRET = "test-secret"


class MemoryStorage:
    """Dict-backed stand-in for the local key-value store."""

    def __init__(self, items: Optional[Dict[str, str]] = None):
        self.items: Dict[str, str] = dict(items or {})
        self.writes: List[str] = []

    def get_item(self, key: str) -> Optional[str]:
        return self.items.get(key)

    async def set_item(self, key: str, value: str) -> None:
        self.writes.append(key)
        self.items[key] = value

    async def remove_item(self, key: str) -> None:
        self.writes.append(key)
        self.items.pop(key, None)


class FailingStorage(MemoryStorage):
    """Reads work, every write raises."""

    async def set_item(self, key: str, value: str) -> None:
        raise OSError("disk full")

    async def remove_item(self, key: str) -> None:
        raise OSError("disk full")


class BrokenStorage(MemoryStorage):
    """Every read raises."""

    def get_item(self, key: str) -> Optional[str]:
        raise OSError("storage unavailable")


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class RecordingRemote:
    """Captures active-talisman mirroring calls."""

    def __init__(self):
        self.active_calls: List[Optional[str]] = []

    async def set_active_talisman(self, talisman_id: Optional[str]) -> bool:
        self.active_calls.append(talisman_id)
        return True


def auth_headers(user_id: str, secret: str = SECRET) -> Dict[str, str]:
    return {"X-User-Id": user_id, "X-Signature": sign_user_id(secret, user_id)}


def api_client() -> httpx.AsyncClient:
    """HTTP client talking to the FastAPI app in-process."""
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


def remote_for(user_id: str) -> RemoteSync:
    """RemoteSync pointed at the in-process API."""
    client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app))
    return RemoteSync("http://test", user_id, SECRET, client=client)


def remote_with_handler(handler, user_id: str = "user-1") -> RemoteSync:
    """RemoteSync whose transport is a plain function (for failure injection)."""
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RemoteSync("http://test", user_id, SECRET, client=client)
