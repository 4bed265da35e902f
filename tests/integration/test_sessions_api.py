"""API tests for session browsing."""

from __future__ import annotations

from datetime import date

import pytest


class TestBrowseSessions:
    @pytest.mark.asyncio
    async def test_only_visible_statuses(self, client, make_user, make_session, auth_headers):
        user = await make_user()
        published = await make_session()
        full = await make_session(status="full")
        await make_session(status="draft")
        await make_session(status="cancelled")

        resp = await client.get("/api/v1/sessions", headers=auth_headers(user))
        assert resp.status_code == 200
        ids = [s["id"] for s in resp.json()["sessions"]]
        assert ids == [published.id, full.id]

    @pytest.mark.asyncio
    async def test_counts_and_flags(self, client, make_user, make_session, auth_headers):
        me = await make_user()
        other = await make_user()
        session = await make_session(capacity=3)
        await client.post("/api/v1/registrations", json={"session_id": session.id}, headers=auth_headers(other))

        resp = await client.get("/api/v1/sessions", headers=auth_headers(me))
        item = resp.json()["sessions"][0]
        assert item["registration_count"] == 1
        assert item["seats_left"] == 2
        assert item["user_registered"] is False

        await client.post("/api/v1/registrations", json={"session_id": session.id}, headers=auth_headers(me))
        resp = await client.get("/api/v1/sessions", headers=auth_headers(me))
        item = resp.json()["sessions"][0]
        assert item["registration_count"] == 2
        assert item["user_registered"] is True

    @pytest.mark.asyncio
    async def test_date_range(self, client, make_user, make_session, auth_headers):
        user = await make_user()
        await make_session(session_date=date(2024, 5, 1))
        june = await make_session(session_date=date(2024, 6, 15))
        await make_session(session_date=date(2024, 7, 1))

        resp = await client.get(
            "/api/v1/sessions",
            params={"start_date": "2024-06-01", "end_date": "2024-06-30"},
            headers=auth_headers(user),
        )
        assert [s["id"] for s in resp.json()["sessions"]] == [june.id]


class TestSessionDetail:
    @pytest.mark.asyncio
    async def test_detail_with_presenter(self, client, make_user, make_session, auth_headers):
        user = await make_user()
        session = await make_session(with_presenter=True, capacity=None)

        resp = await client.get(f"/api/v1/sessions/{session.id}", headers=auth_headers(user))
        assert resp.status_code == 200
        data = resp.json()
        assert data["presenter"]["name"] == "Dr. Rivera"
        assert data["seats_left"] is None
        assert data["start_time"] == "15:30:00"

    @pytest.mark.asyncio
    async def test_draft_hidden_from_staff(self, client, make_user, make_session, auth_headers):
        staff = await make_user()
        admin = await make_user(role="admin")
        draft = await make_session(status="draft")

        staff_resp = await client.get(f"/api/v1/sessions/{draft.id}", headers=auth_headers(staff))
        assert staff_resp.status_code == 404

        admin_resp = await client.get(f"/api/v1/sessions/{draft.id}", headers=auth_headers(admin))
        assert admin_resp.status_code == 200
        assert admin_resp.json()["status"] == "draft"

    @pytest.mark.asyncio
    async def test_unknown(self, client, make_user, auth_headers):
        user = await make_user()
        resp = await client.get("/api/v1/sessions/8080", headers=auth_headers(user))
        assert resp.status_code == 404
        assert resp.json()["code"] == "NOT_FOUND"
