"""FastAPI server exposing the remote progression contract."""

import hmac
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from ..analytics import DEFAULT_RITUAL_XP, Element, ProgressionRecord, analytics_to_dict
from ..config import config
from ..leaderboard import LEADERBOARD_SIZE
from ..levels import get_level_progress
from ..rewards import unlocked_rewards
from ..utils import sign_user_id
from . import get_records

logger = logging.getLogger(__name__)

app = FastAPI(title="Grimoire Progression API", docs_url=None, redoc_url=None)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)


def validate_signature(user_id: str, signature: str) -> bool:
    """Check ``signature`` is the HMAC of ``user_id`` under the shared secret."""
    if not config.api_secret:
        logger.warning("API_SECRET is not configured, rejecting request")
        return False
    expected = sign_user_id(config.api_secret, user_id)
    return hmac.compare_digest(expected, signature)


async def get_user_id(request: Request) -> str:
    """Extract and validate the caller from X-User-Id / X-Signature headers."""
    user_id = request.headers.get("X-User-Id", "")
    signature = request.headers.get("X-Signature", "")
    if not user_id or not signature:
        raise HTTPException(status_code=401, detail="Missing credentials")
    if not validate_signature(user_id, signature):
        logger.warning(f"Signature mismatch for user {user_id}")
        raise HTTPException(status_code=401, detail="Invalid signature")
    await get_records().ensure_user(user_id)
    return user_id


def progression_result(progression: ProgressionRecord) -> Dict[str, int]:
    return {
        "cumulative_experience": progression.cumulative_experience,
        "rank": progression.rank,
    }


# ---- Models ----

class DisplayNameRequest(BaseModel):
    display_name: str = Field(min_length=2, max_length=64)


class ExperienceRequest(BaseModel):
    amount: int = Field(gt=0)


class ActiveTalismanRequest(BaseModel):
    talisman_id: Optional[str] = Field(default=None, max_length=128)


class BirthDataRequest(BaseModel):
    date_of_birth: str
    time_of_birth: str
    place_of_birth: str
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)


class RitualRequest(BaseModel):
    elements: List[Element] = Field(min_length=1)
    xp_amount: int = Field(default=DEFAULT_RITUAL_XP, gt=0)


class SessionRequest(BaseModel):
    minutes: int = Field(gt=0)


# ---- Endpoints ----

@app.get("/api/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@app.post("/api/profile/display-name")
async def set_display_name(body: DisplayNameRequest, request: Request):
    user_id = await get_user_id(request)
    ok = await get_records().set_display_name(user_id, body.display_name)
    logger.info(f"User {user_id} set display name")
    return {"success": ok}


@app.post("/api/progression/experience")
async def add_experience(body: ExperienceRequest, request: Request):
    user_id = await get_user_id(request)
    progression = await get_records().add_experience(user_id, body.amount)
    return progression_result(progression)


@app.post("/api/profile/active-talisman")
async def set_active_talisman(body: ActiveTalismanRequest, request: Request):
    user_id = await get_user_id(request)
    ok = await get_records().set_active_talisman(user_id, body.talisman_id)
    return {"success": ok}


@app.post("/api/profile/birth-data")
async def set_birth_data(body: BirthDataRequest, request: Request):
    user_id = await get_user_id(request)
    ok = await get_records().set_birth_data(user_id, body.model_dump())
    return {"success": ok}


@app.get("/api/profile")
async def get_profile(request: Request) -> Dict[str, Any]:
    user_id = await get_user_id(request)
    profile = get_records().get_profile(user_id)
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    profile["level"] = get_level_progress(profile["cumulative_experience"])
    profile["rewards"] = [reward.to_dict() for reward in unlocked_rewards(profile["rank"])]
    return profile


@app.get("/api/analytics")
async def get_analytics(request: Request):
    user_id = await get_user_id(request)
    record = await get_records().get_or_create_analytics(user_id)
    return analytics_to_dict(record)


@app.post("/api/analytics/ritual")
async def record_ritual(body: RitualRequest, request: Request):
    user_id = await get_user_id(request)
    progression = await get_records().record_ritual(user_id, body.elements, body.xp_amount)
    logger.info(
        f"User {user_id} completed a ritual "
        f"({', '.join(e.value for e in body.elements)}, +{body.xp_amount} XP)"
    )
    return progression_result(progression)


@app.post("/api/analytics/session")
async def record_session(body: SessionRequest, request: Request):
    user_id = await get_user_id(request)
    progression = await get_records().record_session(user_id, body.minutes)
    logger.info(f"User {user_id} completed a {body.minutes} minute session")
    return progression_result(progression)


@app.get("/api/leaderboard")
async def get_leaderboard(limit: int = Query(default=LEADERBOARD_SIZE, ge=1, le=LEADERBOARD_SIZE)):
    return [entry.to_dict() for entry in get_records().get_leaderboard(limit)]


@app.post("/api/leaderboard/refresh")
async def refresh_leaderboard(request: Request):
    user_id = await get_user_id(request)
    entries = await get_records().refresh_leaderboard()
    logger.info(f"User {user_id} refreshed the leaderboard ({len(entries)} entries)")
    return {"success": True}
