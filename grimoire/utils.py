"""Utility functions for ids, timestamps and day keys."""

import hashlib
import hmac
import secrets
import string
import time
from datetime import date, datetime, timezone
from typing import Optional, Union

_BASE36 = string.digits + string.ascii_lowercase


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_talisman_id() -> str:
    """Generate a talisman id: base36 millisecond clock + 6 random chars."""
    salt = "".join(secrets.choice(_BASE36) for _ in range(6))
    return _to_base36(int(time.time() * 1000)) + salt


def as_utc(moment: datetime) -> datetime:
    """Normalise a datetime to aware UTC. Naive values are taken as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def day_key(moment: Union[date, datetime]) -> str:
    """Canonical ``YYYY-MM-DD`` key of the UTC calendar day containing ``moment``."""
    if isinstance(moment, datetime):
        return as_utc(moment).date().isoformat()
    return moment.isoformat()


def to_iso(moment: Optional[datetime]) -> Optional[str]:
    return as_utc(moment).isoformat() if moment else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return as_utc(datetime.fromisoformat(value))


def sign_user_id(secret: str, user_id: str) -> str:
    """Hex HMAC-SHA256 of ``user_id`` keyed by the shared API secret."""
    return hmac.new(secret.encode(), user_id.encode(), hashlib.sha256).hexdigest()
