"""API tests for pet, level, streak and achievement endpoints."""

from __future__ import annotations

from datetime import date

import pytest

from pdportal.progression.streak_service import record_activity


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_levels(self, client):
        resp = await client.get("/api/v1/levels")
        assert resp.status_code == 200
        data = resp.json()
        assert data["max_level"] == 10
        assert [lvl["cumulative"] for lvl in data["levels"]] == [
            0, 100, 250, 450, 700, 1000, 1350, 1750, 2200, 2700,
        ]

    @pytest.mark.asyncio
    async def test_achievement_catalog(self, client):
        resp = await client.get("/api/v1/achievements")
        assert resp.status_code == 200
        titles = [a["title"] for a in resp.json()["achievements"]]
        assert titles == ["First Steps", "Learner", "Scholar", "Rising Star", "Master", "On Fire", "Perfect"]


class TestPetEndpoints:
    @pytest.mark.asyncio
    async def test_progress_summary_provisions_pet(self, client, make_user, auth_headers):
        user = await make_user()
        resp = await client.get("/api/v1/pets/progress-summary", headers=auth_headers(user))
        assert resp.status_code == 200
        data = resp.json()
        assert data["pet"]["user_id"] == user.id
        assert data["pet"]["level"] == 1
        assert data["pet"]["xp_to_next_level"] == 100
        assert data["streak"] == {"current_streak": 0, "longest_streak": 0, "last_session_date": None}
        assert data["achievements"] == []
        assert data["total_achievements"] == 7

    @pytest.mark.asyncio
    async def test_my_pet(self, client, make_user, auth_headers):
        user = await make_user()
        first = await client.get("/api/v1/pets/my-pet", headers=auth_headers(user))
        second = await client.get("/api/v1/pets/my-pet", headers=auth_headers(user))
        assert first.status_code == 200
        assert first.json()["id"] == second.json()["id"]

    @pytest.mark.asyncio
    async def test_create_pet_then_conflict(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)
        resp = await client.post("/api/v1/pets", json={"name": "Nova", "pet_type": "Phoenix"}, headers=headers)
        assert resp.status_code == 201
        assert resp.json()["name"] == "Nova"
        assert resp.json()["pet_type"] == "Phoenix"

        again = await client.post("/api/v1/pets", json={}, headers=headers)
        assert again.status_code == 409
        assert again.json()["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_rename(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)
        missing = await client.put("/api/v1/pets/name", json={"name": "Ash"}, headers=headers)
        assert missing.status_code == 404

        await client.post("/api/v1/pets", json={}, headers=headers)
        resp = await client.put("/api/v1/pets/name", json={"name": "Ash"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Ash"

    @pytest.mark.asyncio
    async def test_rename_blank(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)
        await client.post("/api/v1/pets", json={}, headers=headers)
        resp = await client.put("/api/v1/pets/name", json={"name": "   "}, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_INPUT"


class TestInteractionExperience:
    @pytest.mark.asyncio
    async def test_grant(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)
        await client.post("/api/v1/pets", json={}, headers=headers)

        resp = await client.post("/api/v1/pets/experience", json={"amount": 30}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["experience"] == 30
        assert resp.json()["progress_percent"] == 30.0

        history = await client.get("/api/v1/pets/experience/history", headers=headers)
        assert history.status_code == 200
        entries = history.json()["entries"]
        assert [(e["amount"], e["reason"]) for e in entries] == [(30, "interaction")]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "body",
        [
            {"amount": 10, "reason": "registration"},
            {"amount": 10, "reason": "attendance"},
            {"amount": 51},
            {"amount": 0},
            {"amount": -3},
        ],
    )
    async def test_rejected(self, client, make_user, auth_headers, body):
        user = await make_user()
        headers = auth_headers(user)
        await client.post("/api/v1/pets", json={}, headers=headers)

        resp = await client.post("/api/v1/pets/experience", json=body, headers=headers)
        assert resp.status_code == 422
        assert resp.json()["code"] == "INVALID_INPUT"

    @pytest.mark.asyncio
    async def test_no_pet(self, client, make_user, auth_headers):
        user = await make_user()
        resp = await client.post("/api/v1/pets/experience", json={"amount": 5}, headers=auth_headers(user))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_reaching_level_five_unlocks_rising_star(self, client, make_user, auth_headers):
        user = await make_user()
        headers = auth_headers(user)
        await client.post("/api/v1/pets", json={}, headers=headers)

        for _ in range(14):
            resp = await client.post("/api/v1/pets/experience", json={"amount": 50}, headers=headers)
            assert resp.status_code == 200
        assert resp.json()["level"] == 5

        achievements = await client.get("/api/v1/users/me/achievements", headers=headers)
        data = achievements.json()
        assert [a["title"] for a in data["unlocked"]] == ["Rising Star"]
        assert data["total_unlocked"] == 1
        assert data["total_available"] == 7


class TestStreakEndpoint:
    @pytest.mark.asyncio
    async def test_empty_streak(self, client, make_user, auth_headers):
        user = await make_user()
        resp = await client.get("/api/v1/users/me/streak", headers=auth_headers(user))
        assert resp.status_code == 200
        assert resp.json()["current_streak"] == 0

    @pytest.mark.asyncio
    async def test_lapsed_streak_reported_as_zero(self, client, db_session, make_user, auth_headers):
        user = await make_user()
        await record_activity(db_session, user.id, date(2024, 6, 10))
        await record_activity(db_session, user.id, date(2024, 6, 11))

        resp = await client.get("/api/v1/users/me/streak", headers=auth_headers(user))
        assert resp.json() == {
            "current_streak": 0,
            "longest_streak": 2,
            "last_session_date": "2024-06-11",
        }
