"""Remote sync: HTTP client for the progression system of record.

Every call is fail-soft: network errors, non-2xx responses and malformed
bodies are logged and turned into a neutral result (``ProgressionResult(0, 0)``,
``None``, ``[]`` or ``False``). A neutral result is therefore ambiguous
between "nothing happened" and "the call failed"; callers that care must
check ``last_error``. Argument errors are still raised before any request.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Union

import httpx

from .analytics import DEFAULT_RITUAL_XP, AnalyticsRecord, Element, analytics_from_dict, coerce_elements
from .leaderboard import LEADERBOARD_SIZE, LeaderboardEntry
from .utils import sign_user_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressionResult:
    cumulative_experience: int
    rank: int

    @property
    def is_neutral(self) -> bool:
        return self.cumulative_experience == 0 and self.rank == 0


NEUTRAL_RESULT = ProgressionResult(0, 0)


@dataclass
class BirthData:
    date_of_birth: str
    time_of_birth: str
    place_of_birth: str
    latitude: float
    longitude: float


def _require_positive(name: str, value: int) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise ValueError(f"{name} must be a positive integer, got {value!r}")


class RemoteSync:
    """Mirrors progression, analytics and wallet selection to the server."""

    def __init__(
        self,
        base_url: str,
        user_id: str,
        secret: str,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self.secret = secret
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self.last_error: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.base_url and self.user_id and self.secret)

    async def close(self) -> None:
        await self._client.aclose()

    def _headers(self) -> Dict[str, str]:
        return {
            "X-User-Id": self.user_id,
            "X-Signature": sign_user_id(self.secret, self.user_id),
        }

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        if not self.enabled:
            self.last_error = "remote sync not configured"
            return None
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                json=json,
                params=params,
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            self.last_error = f"{type(e).__name__}: {e}"
            logger.error(f"Remote {method} {path} failed: {self.last_error}")
            return None
        except ValueError as e:
            self.last_error = f"invalid response body: {e}"
            logger.error(f"Remote {method} {path} returned an invalid body: {e}")
            return None
        self.last_error = None
        return body

    def _progression(self, body: Optional[Any]) -> ProgressionResult:
        try:
            return ProgressionResult(
                cumulative_experience=int(body["cumulative_experience"]),
                rank=int(body["rank"]),
            )
        except (TypeError, KeyError, ValueError):
            if body is not None:
                self.last_error = "unexpected progression payload"
                logger.error(f"Unexpected progression payload: {body!r}")
            return NEUTRAL_RESULT

    def _success(self, body: Optional[Any]) -> bool:
        return bool(isinstance(body, dict) and body.get("success"))

    # ---- Profile ----

    async def set_display_name(self, display_name: str) -> bool:
        body = await self._request(
            "POST", "/api/profile/display-name", json={"display_name": display_name}
        )
        return self._success(body)

    async def set_active_talisman(self, talisman_id: Optional[str]) -> bool:
        body = await self._request(
            "POST", "/api/profile/active-talisman", json={"talisman_id": talisman_id}
        )
        return self._success(body)

    async def set_birth_data(self, birth_data: BirthData) -> bool:
        body = await self._request(
            "POST",
            "/api/profile/birth-data",
            json={
                "date_of_birth": birth_data.date_of_birth,
                "time_of_birth": birth_data.time_of_birth,
                "place_of_birth": birth_data.place_of_birth,
                "latitude": birth_data.latitude,
                "longitude": birth_data.longitude,
            },
        )
        return self._success(body)

    async def get_profile(self) -> Optional[Dict[str, Any]]:
        body = await self._request("GET", "/api/profile")
        return body if isinstance(body, dict) else None

    # ---- Progression & analytics ----

    async def add_experience(self, amount: int) -> ProgressionResult:
        _require_positive("amount", amount)
        body = await self._request(
            "POST", "/api/progression/experience", json={"amount": amount}
        )
        return self._progression(body)

    async def record_ritual(
        self,
        elements: Iterable[Union[Element, str]],
        xp_amount: int = DEFAULT_RITUAL_XP,
    ) -> ProgressionResult:
        tags = coerce_elements(elements)
        _require_positive("xp_amount", xp_amount)
        body = await self._request(
            "POST",
            "/api/analytics/ritual",
            json={"elements": [e.value for e in tags], "xp_amount": xp_amount},
        )
        return self._progression(body)

    async def record_session(self, minutes: int) -> ProgressionResult:
        _require_positive("minutes", minutes)
        body = await self._request(
            "POST", "/api/analytics/session", json={"minutes": minutes}
        )
        return self._progression(body)

    async def get_analytics(self) -> Optional[AnalyticsRecord]:
        body = await self._request("GET", "/api/analytics")
        if not isinstance(body, dict):
            return None
        return analytics_from_dict(body)

    # ---- Leaderboard ----

    async def get_leaderboard(self, limit: int = LEADERBOARD_SIZE) -> List[LeaderboardEntry]:
        body = await self._request("GET", "/api/leaderboard", params={"limit": limit})
        if not isinstance(body, list):
            return []
        try:
            return [
                LeaderboardEntry(
                    rank=int(item["rank"]),
                    display_name=item["display_name"],
                    cumulative_experience=int(item["cumulative_experience"]),
                    rank_tier=int(item["rank_tier"]),
                )
                for item in body
            ]
        except (TypeError, KeyError, ValueError):
            logger.error("Unexpected leaderboard payload")
            return []

    async def refresh_leaderboard(self) -> bool:
        body = await self._request("POST", "/api/leaderboard/refresh")
        return self._success(body)
