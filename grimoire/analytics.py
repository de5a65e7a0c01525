"""Per-user progression and elemental analytics ("The Mirror of the Soul").

All mutations are additive. Day buckets use UTC calendar days so that the
client cache and the server record always agree on which day an instant
belongs to.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Union

from .levels import rank_for
from .power import STASIS_MULTIPLIER, round_half_up
from .utils import as_utc, day_key, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RITUAL_XP = 25
SESSION_XP_PER_MINUTE = 2
DAILY_ACTIVITY_WINDOW_DAYS = 365


class Element(str, Enum):
    FIRE = "fire"
    AIR = "air"
    WATER = "water"
    EARTH = "earth"
    SPIRIT = "spirit"


def _zero_elements() -> Dict[Element, int]:
    return {element: 0 for element in Element}


@dataclass
class ProgressionRecord:
    """Cumulative experience. Rank is always derived, never stored."""
    cumulative_experience: int = 0

    @property
    def rank(self) -> int:
        return rank_for(self.cumulative_experience)

    def add_experience(self, amount: int) -> int:
        _require_positive("amount", amount)
        self.cumulative_experience += amount
        return self.cumulative_experience


@dataclass
class AnalyticsRecord:
    element_xp: Dict[Element, int] = field(default_factory=_zero_elements)
    total_session_minutes: int = 0
    rituals_performed_count: int = 0
    # Format: {"2026-02-15": 50}
    daily_activity: Dict[str, int] = field(default_factory=dict)


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


def _as_date(moment: Union[date, datetime]) -> date:
    if isinstance(moment, datetime):
        return as_utc(moment).date()
    return moment


def create_analytics() -> AnalyticsRecord:
    """Fresh record: every counter zero, no daily activity."""
    return AnalyticsRecord()


def coerce_elements(elements: Iterable[Union[Element, str]]) -> List[Element]:
    """Validate and de-duplicate element tags, keeping first-seen order."""
    result = list(dict.fromkeys(Element(e) for e in elements))
    if not result:
        raise ValueError("At least one element is required")
    return result


# ---- Increments ----

def increment_element(record: AnalyticsRecord, element: Union[Element, str], amount: int) -> None:
    _require_positive("amount", amount)
    element = Element(element)
    record.element_xp[element] = record.element_xp.get(element, 0) + amount


def increment_ritual_count(record: AnalyticsRecord) -> None:
    record.rituals_performed_count += 1


def add_session_minutes(record: AnalyticsRecord, minutes: int) -> None:
    _require_positive("minutes", minutes)
    record.total_session_minutes += minutes


def prune_daily_activity(record: AnalyticsRecord, today: Union[date, datetime]) -> int:
    """Drop day buckets older than the rolling window. Returns how many were dropped."""
    oldest = day_key(_as_date(today) - timedelta(days=DAILY_ACTIVITY_WINDOW_DAYS - 1))
    stale = [key for key in record.daily_activity if key < oldest]
    for key in stale:
        del record.daily_activity[key]
    return len(stale)


def record_daily_activity(
    record: AnalyticsRecord,
    amount: int,
    at: Optional[Union[date, datetime]] = None,
) -> str:
    """Add ``amount`` to the bucket of the day containing ``at``. Returns the day key."""
    _require_positive("amount", amount)
    at = at if at is not None else utcnow()
    key = day_key(at)
    record.daily_activity[key] = record.daily_activity.get(key, 0) + amount
    prune_daily_activity(record, at)
    return key


# ---- Composite workflows ----

def record_ritual(
    record: AnalyticsRecord,
    progression: ProgressionRecord,
    elements: Iterable[Union[Element, str]],
    xp_amount: int = DEFAULT_RITUAL_XP,
    at: Optional[datetime] = None,
) -> None:
    """Apply a completed ritual.

    Every tagged element receives the full ``xp_amount`` (it is not split), so
    elemental totals do not sum to cumulative experience.
    """
    tags = coerce_elements(elements)
    _require_positive("xp_amount", xp_amount)

    increment_ritual_count(record)
    for element in tags:
        increment_element(record, element, xp_amount)
    progression.add_experience(xp_amount)
    record_daily_activity(record, xp_amount, at)


def ritual_xp(base: int, stasis_buff_active: bool = False) -> int:
    """XP a ritual worth ``base`` awards; the stasis buff multiplies it by 1.15."""
    _require_positive("xp_amount", base)
    if stasis_buff_active:
        return round_half_up(base * STASIS_MULTIPLIER)
    return base


def session_xp(minutes: int) -> int:
    return round_half_up(minutes * SESSION_XP_PER_MINUTE)


def record_session(
    record: AnalyticsRecord,
    progression: ProgressionRecord,
    minutes: int,
    at: Optional[datetime] = None,
) -> int:
    """Apply a meditation session. All of its experience is spirit. Returns the XP awarded."""
    add_session_minutes(record, minutes)
    xp = session_xp(minutes)
    increment_element(record, Element.SPIRIT, xp)
    progression.add_experience(xp)
    record_daily_activity(record, xp, at)
    return xp


# ---- Derived reads ----

def heatmap_window(
    record: AnalyticsRecord,
    days: int,
    ending_at: Union[date, datetime],
) -> List[Dict[str, Any]]:
    """Exactly ``days`` consecutive days ending at ``ending_at``, zero-filled, oldest first."""
    _require_positive("days", days)
    end = _as_date(ending_at)
    window = []
    for offset in range(days - 1, -1, -1):
        key = day_key(end - timedelta(days=offset))
        window.append({"date": key, "value": record.daily_activity.get(key, 0)})
    return window


def current_streak(record: AnalyticsRecord, today: Union[date, datetime]) -> int:
    """Consecutive active days ending today, or yesterday if today is still empty."""
    day = _as_date(today)
    if record.daily_activity.get(day_key(day), 0) <= 0:
        day -= timedelta(days=1)
    streak = 0
    while record.daily_activity.get(day_key(day), 0) > 0:
        streak += 1
        day -= timedelta(days=1)
    return streak


# ---- Serialization ----

def analytics_to_dict(record: AnalyticsRecord) -> Dict[str, Any]:
    return {
        "element_xp": {element.value: record.element_xp.get(element, 0) for element in Element},
        "total_session_minutes": record.total_session_minutes,
        "rituals_performed_count": record.rituals_performed_count,
        "daily_activity": dict(record.daily_activity),
    }


def analytics_from_dict(data: Dict[str, Any]) -> AnalyticsRecord:
    elements = _zero_elements()
    for name, value in (data.get("element_xp") or {}).items():
        try:
            elements[Element(name)] = int(value)
        except ValueError:
            logger.warning(f"Ignoring unknown element counter '{name}'")
    return AnalyticsRecord(
        element_xp=elements,
        total_session_minutes=int(data.get("total_session_minutes", 0)),
        rituals_performed_count=int(data.get("rituals_performed_count", 0)),
        daily_activity={k: int(v) for k, v in (data.get("daily_activity") or {}).items()},
    )
