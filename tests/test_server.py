"""
Tests for the progression API served by FastAPI.

Requests go through httpx's ASGI transport, so no network is involved.
"""

import asyncio

import pytest

from grimoire.analytics import Element
from grimoire.server import RecordsStore
from tests.helpers import api_client, auth_headers


async def name_user(client, user_id, name):
    response = await client.post(
        "/api/profile/display-name",
        json={"display_name": name},
        headers=auth_headers(user_id),
    )
    assert response.status_code == 200


async def give_xp(client, user_id, amount):
    response = await client.post(
        "/api/progression/experience",
        json={"amount": amount},
        headers=auth_headers(user_id),
    )
    assert response.status_code == 200
    return response.json()


# =============================================================================
# Auth and validation
# =============================================================================

@pytest.mark.asyncio
async def test_health(records):
    async with api_client() as client:
        response = await client.get("/api/health")

    assert response.json() == {"status": "ok"}


@pytest.mark.asyncio
async def test_missing_credentials(records):
    async with api_client() as client:
        response = await client.get("/api/profile")

    assert response.status_code == 401


@pytest.mark.asyncio
async def test_bad_signature(records):
    headers = auth_headers("user-1", secret="wrong-secret")
    async with api_client() as client:
        response = await client.post(
            "/api/progression/experience", json={"amount": 10}, headers=headers
        )

    assert response.status_code == 401
    assert records.get_user("user-1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("path,body", [
    ("/api/progression/experience", {"amount": 0}),
    ("/api/progression/experience", {"amount": -10}),
    ("/api/analytics/ritual", {"elements": []}),
    ("/api/analytics/ritual", {"elements": ["aether"]}),
    ("/api/analytics/ritual", {"elements": ["fire"], "xp_amount": 0}),
    ("/api/analytics/session", {"minutes": 0}),
    ("/api/profile/display-name", {"display_name": "x"}),
    ("/api/profile/birth-data", {
        "date_of_birth": "1990-01-01",
        "time_of_birth": "12:00",
        "place_of_birth": "Nowhere",
        "latitude": 95,
        "longitude": 0,
    }),
])
async def test_invalid_bodies_are_rejected(records, path, body):
    async with api_client() as client:
        response = await client.post(path, json=body, headers=auth_headers("user-1"))

    assert response.status_code == 422
    assert records.get_progression("user-1").cumulative_experience == 0


# =============================================================================
# Progression and analytics
# =============================================================================

@pytest.mark.asyncio
async def test_add_experience(records):
    async with api_client() as client:
        first = await give_xp(client, "user-1", 80)
        second = await give_xp(client, "user-1", 40)

    assert first == {"cumulative_experience": 80, "rank": 0}
    assert second == {"cumulative_experience": 120, "rank": 1}


@pytest.mark.asyncio
async def test_ritual_and_session(records):
    headers = auth_headers("user-1")
    async with api_client() as client:
        ritual = await client.post(
            "/api/analytics/ritual",
            json={"elements": ["fire", "spirit"]},
            headers=headers,
        )
        session = await client.post(
            "/api/analytics/session", json={"minutes": 10}, headers=headers
        )
        analytics = (await client.get("/api/analytics", headers=headers)).json()

    assert ritual.json() == {"cumulative_experience": 25, "rank": 0}
    assert session.json() == {"cumulative_experience": 45, "rank": 0}
    assert analytics["element_xp"] == {
        "fire": 25,
        "air": 0,
        "water": 0,
        "earth": 0,
        "spirit": 45,
    }
    assert analytics["rituals_performed_count"] == 1
    assert analytics["total_session_minutes"] == 10
    assert sum(analytics["daily_activity"].values()) == 45


@pytest.mark.asyncio
async def test_overlapping_rituals_all_count(records):
    headers = auth_headers("user-1")
    async with api_client() as client:
        await asyncio.gather(*[
            client.post("/api/analytics/ritual", json={"elements": ["fire"]}, headers=headers)
            for _ in range(10)
        ])
        profile = (await client.get("/api/profile", headers=headers)).json()
        analytics = (await client.get("/api/analytics", headers=headers)).json()

    assert profile["cumulative_experience"] == 250
    assert analytics["element_xp"]["fire"] == 250
    assert analytics["rituals_performed_count"] == 10
    assert sum(analytics["daily_activity"].values()) == 250


@pytest.mark.asyncio
async def test_overlapping_ritual_session_and_experience(records):
    headers = auth_headers("user-1")
    async with api_client() as client:
        await asyncio.gather(
            client.post("/api/analytics/ritual", json={"elements": ["air"]}, headers=headers),
            client.post("/api/progression/experience", json={"amount": 100}, headers=headers),
            client.post("/api/analytics/session", json={"minutes": 10}, headers=headers),
        )

    analytics = records.get_analytics("user-1")
    assert records.get_progression("user-1").cumulative_experience == 145
    assert analytics.element_xp[Element.AIR] == 25
    assert analytics.element_xp[Element.SPIRIT] == 20
    assert analytics.total_session_minutes == 10
    assert sum(analytics.daily_activity.values()) == 45


@pytest.mark.asyncio
async def test_store_writes_never_lose_increments(records):
    await records.ensure_user("user-1")

    await asyncio.gather(
        *[records.record_ritual("user-1", [Element.WATER], 25) for _ in range(5)],
        *[records.record_session("user-1", 3) for _ in range(5)],
        *[records.add_experience("user-1", 10) for _ in range(5)],
    )

    analytics = records.get_analytics("user-1")
    assert records.get_progression("user-1").cumulative_experience == 5 * 25 + 5 * 6 + 5 * 10
    assert analytics.element_xp[Element.WATER] == 125
    assert analytics.element_xp[Element.SPIRIT] == 30
    assert analytics.rituals_performed_count == 5
    assert analytics.total_session_minutes == 15
    assert sum(analytics.daily_activity.values()) == 155


@pytest.mark.asyncio
async def test_users_are_isolated(records):
    async with api_client() as client:
        await give_xp(client, "user-1", 500)
        await give_xp(client, "user-2", 10)

    assert records.get_progression("user-1").cumulative_experience == 500
    assert records.get_progression("user-2").cumulative_experience == 10


# =============================================================================
# Profile
# =============================================================================

@pytest.mark.asyncio
async def test_profile(records):
    headers = auth_headers("user-1")
    async with api_client() as client:
        await name_user(client, "user-1", "  Frater Lux  ")
        await client.post(
            "/api/profile/active-talisman", json={"talisman_id": "abc123"}, headers=headers
        )
        await client.post(
            "/api/profile/birth-data",
            json={
                "date_of_birth": "1990-06-21",
                "time_of_birth": "04:30",
                "place_of_birth": "Lisbon",
                "latitude": 38.72,
                "longitude": -9.14,
            },
            headers=headers,
        )
        await client.post("/api/analytics/ritual", json={"elements": ["water"]}, headers=headers)
        await give_xp(client, "user-1", 300)
        profile = (await client.get("/api/profile", headers=headers)).json()

    assert profile["display_name"] == "Frater Lux"
    assert profile["cumulative_experience"] == 325
    assert profile["rank"] == 2
    assert profile["streak"] == 1
    assert profile["active_talisman_id"] == "abc123"
    assert profile["birth_data"]["place_of_birth"] == "Lisbon"
    assert profile["level"]["title"] == "Theoricus"
    assert [reward["rank"] for reward in profile["rewards"]] == [1, 2]


@pytest.mark.asyncio
async def test_active_talisman_can_be_cleared(records):
    headers = auth_headers("user-1")
    async with api_client() as client:
        await client.post(
            "/api/profile/active-talisman", json={"talisman_id": "abc"}, headers=headers
        )
        await client.post(
            "/api/profile/active-talisman", json={"talisman_id": None}, headers=headers
        )
        profile = (await client.get("/api/profile", headers=headers)).json()

    assert profile["active_talisman_id"] is None


# =============================================================================
# Leaderboard
# =============================================================================

@pytest.mark.asyncio
async def test_leaderboard_refresh_is_dense(records):
    async with api_client() as client:
        await name_user(client, "a", "Alpha")
        await give_xp(client, "a", 500)
        await name_user(client, "b", "Beta")
        await give_xp(client, "b", 900)
        await give_xp(client, "anon", 700)

        before = (await client.get("/api/leaderboard")).json()
        refreshed = await client.post("/api/leaderboard/refresh", headers=auth_headers("a"))
        board = (await client.get("/api/leaderboard")).json()

    assert before == []
    assert refreshed.json() == {"success": True}
    assert [(e["rank"], e["display_name"], e["cumulative_experience"]) for e in board] == [
        (1, "Beta", 900),
        (2, "Alpha", 500),
    ]
    assert board[0]["rank_tier"] == 3


@pytest.mark.asyncio
async def test_leaderboard_limit(records):
    async with api_client() as client:
        for i in range(5):
            await name_user(client, f"u{i}", f"User {i}")
            await give_xp(client, f"u{i}", (i + 1) * 100)
        await client.post("/api/leaderboard/refresh", headers=auth_headers("u0"))

        top_two = (await client.get("/api/leaderboard", params={"limit": 2})).json()
        too_many = await client.get("/api/leaderboard", params={"limit": 500})

    assert [e["display_name"] for e in top_two] == ["User 4", "User 3"]
    assert too_many.status_code == 422


@pytest.mark.asyncio
async def test_leaderboard_cache_survives_restart(records):
    await records.ensure_user("a")
    await records.set_display_name("a", "Alpha")
    await records.add_experience("a", 150)
    await records.refresh_leaderboard()

    reopened = RecordsStore(records.path)
    await reopened.initialize()
    try:
        assert [e.display_name for e in reopened.get_leaderboard()] == ["Alpha"]
    finally:
        await reopened.close()
