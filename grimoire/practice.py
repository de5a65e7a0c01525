"""Client-side practice tracker.

Runs the ritual/session pipeline against a local read-through cache of the
user's progression and analytics, persists the cache, then mirrors the event
to the system of record. When the server answers, its values replace the
cached ones; when it fails, the local values stand until the next refresh.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from . import analytics, power, rituals
from .analytics import DEFAULT_RITUAL_XP, Element, ProgressionRecord
from .levels import get_level_progress
from .store.schema import ANALYTICS_KEY
from .sync import ProgressionResult, RemoteSync
from .utils import from_iso, to_iso, utcnow
from .wallet import SavedTalisman

logger = logging.getLogger(__name__)

HEATMAP_DAYS = 30


@dataclass(frozen=True)
class PracticeOutcome:
    xp_awarded: int
    cumulative_experience: int
    rank: int
    leveled_up: bool
    elements: Tuple[Element, ...]
    stasis_buff_active: bool = False


class PracticeTracker:
    """Owns the local progression/analytics cache for the current user."""

    def __init__(
        self,
        storage,
        remote: Optional[RemoteSync] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.storage = storage
        self.remote = remote
        self.clock = clock
        self.progression = ProgressionRecord()
        self.analytics = analytics.create_analytics()
        self.last_session_at: Optional[datetime] = None

    # ---- persistence ----

    def _to_dict(self) -> Dict[str, Any]:
        return {
            "cumulative_experience": self.progression.cumulative_experience,
            "analytics": analytics.analytics_to_dict(self.analytics),
            "lastSessionAt": to_iso(self.last_session_at),
        }

    async def load(self) -> None:
        try:
            raw = self.storage.get_item(ANALYTICS_KEY)
            if not raw:
                return
            data = json.loads(raw)
            progression = ProgressionRecord(int(data.get("cumulative_experience", 0)))
            record = analytics.analytics_from_dict(data.get("analytics") or {})
            last_session_at = from_iso(data.get("lastSessionAt"))
        except Exception as e:
            logger.warning(f"Failed to load local analytics, starting fresh: {type(e).__name__}: {e}")
            return
        self.progression = progression
        self.analytics = record
        self.last_session_at = last_session_at

    async def _persist(self) -> None:
        try:
            await self.storage.set_item(ANALYTICS_KEY, json.dumps(self._to_dict()))
        except Exception as e:
            logger.error(f"Failed to persist local analytics: {type(e).__name__}: {e}")

    async def _reconcile(self, result: ProgressionResult) -> None:
        """Adopt the server's cumulative experience; a neutral result means the call failed."""
        if result.is_neutral:
            return
        if result.cumulative_experience != self.progression.cumulative_experience:
            logger.info(
                f"Adopting remote experience {result.cumulative_experience} "
                f"(local {self.progression.cumulative_experience})"
            )
            self.progression.cumulative_experience = result.cumulative_experience
            await self._persist()

    # ---- events ----

    async def complete_ritual(
        self,
        elements: Iterable[Union[Element, str]],
        xp_amount: int = DEFAULT_RITUAL_XP,
    ) -> PracticeOutcome:
        """Apply a ritual. Inside the stasis buff window its XP is multiplied by 1.15."""
        tags = analytics.coerce_elements(elements)
        now = self.clock()
        old_rank = self.progression.rank
        buffed = self.stasis_buff_active(now)
        xp_awarded = analytics.ritual_xp(xp_amount, buffed)

        analytics.record_ritual(self.analytics, self.progression, tags, xp_awarded, now)
        await self._persist()

        if self.remote is not None:
            await self._reconcile(await self.remote.record_ritual(tags, xp_awarded))

        return PracticeOutcome(
            xp_awarded=xp_awarded,
            cumulative_experience=self.progression.cumulative_experience,
            rank=self.progression.rank,
            leveled_up=self.progression.rank > old_rank,
            elements=tuple(tags),
            stasis_buff_active=buffed,
        )

    async def perform_ritual(self, ritual_id: str) -> PracticeOutcome:
        ritual = rituals.get_ritual(ritual_id)
        return await self.complete_ritual(ritual.elements, ritual.xp_reward)

    async def complete_session(self, minutes: int) -> PracticeOutcome:
        now = self.clock()
        old_rank = self.progression.rank

        xp = analytics.record_session(self.analytics, self.progression, minutes, now)
        if minutes >= power.STASIS_BUFF_MIN_MINUTES:
            self.last_session_at = now
        await self._persist()

        if self.remote is not None:
            await self._reconcile(await self.remote.record_session(minutes))

        return PracticeOutcome(
            xp_awarded=xp,
            cumulative_experience=self.progression.cumulative_experience,
            rank=self.progression.rank,
            leveled_up=self.progression.rank > old_rank,
            elements=(Element.SPIRIT,),
            stasis_buff_active=self.stasis_buff_active(now),
        )

    async def refresh_from_remote(self) -> bool:
        """Replace the local cache with the server's record. False if the server is unreachable."""
        if self.remote is None:
            return False
        profile = await self.remote.get_profile()
        if profile is None:
            return False
        self.progression.cumulative_experience = int(profile.get("cumulative_experience", 0))
        record = await self.remote.get_analytics()
        if record is not None:
            self.analytics = record
        await self._persist()
        return True

    # ---- derived reads ----

    def stasis_buff_active(self, now: Optional[datetime] = None) -> bool:
        return power.stasis_buff_active(self.last_session_at, now or self.clock())

    def level_progress(self) -> dict:
        return get_level_progress(self.progression.cumulative_experience)

    def heatmap(self, days: int = HEATMAP_DAYS) -> List[Dict[str, Any]]:
        return analytics.heatmap_window(self.analytics, days, self.clock())

    def streak(self) -> int:
        return analytics.current_streak(self.analytics, self.clock())

    def power_rating(
        self,
        transit_score: int,
        dignity_score: int,
        active_talisman: Optional[SavedTalisman] = None,
    ) -> Tuple[int, power.PowerLabel]:
        dignity_at_creation = active_talisman.dignity_score_at_creation if active_talisman else None
        score = power.compute(
            transit_score,
            dignity_score,
            power.rune_modifier_for(dignity_at_creation),
            self.stasis_buff_active(),
        )
        return score, power.classify(score)
