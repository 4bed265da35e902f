"""Integration tests for streak recording, staleness reset and nightly decay."""

from __future__ import annotations

import asyncio
from datetime import date, datetime, timezone

import pytest

from pdportal.database import get_session_factory
from pdportal.progression.streak_service import (
    decay_stale_streaks,
    get_or_create_streak,
    get_streak,
    record_activity,
    reset_if_stale,
)


async def _seed(db, user_id: int, *days: date):
    streak = None
    for day in days:
        streak = await record_activity(db, user_id, day)
    return streak


class TestRecordActivity:
    @pytest.mark.asyncio
    async def test_first_activity_creates_record(self, db_session, make_user):
        user = await make_user()
        streak = await record_activity(db_session, user.id, date(2024, 6, 10))
        assert (streak.current_streak, streak.longest_streak) == (1, 1)
        assert streak.last_session_date == date(2024, 6, 10)

    @pytest.mark.asyncio
    async def test_after_empty_record(self, db_session, make_user):
        user = await make_user()
        empty = await get_or_create_streak(db_session, user.id)
        assert (empty.current_streak, empty.longest_streak, empty.last_session_date) == (0, 0, None)

        streak = await record_activity(db_session, user.id, date(2024, 6, 10))
        assert (streak.current_streak, streak.longest_streak) == (1, 1)

    @pytest.mark.asyncio
    async def test_same_day_unchanged(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 9), date(2024, 6, 10))
        streak = await record_activity(db_session, user.id, date(2024, 6, 10))
        assert (streak.current_streak, streak.longest_streak) == (2, 2)
        assert streak.last_session_date == date(2024, 6, 10)

    @pytest.mark.asyncio
    async def test_consecutive_day_increments(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 10))
        streak = await record_activity(db_session, user.id, date(2024, 6, 11))
        assert (streak.current_streak, streak.longest_streak) == (2, 2)
        assert streak.last_session_date == date(2024, 6, 11)

    @pytest.mark.asyncio
    async def test_gap_resets_and_keeps_longest(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 8), date(2024, 6, 9), date(2024, 6, 10))
        streak = await record_activity(db_session, user.id, date(2024, 6, 13))
        assert (streak.current_streak, streak.longest_streak) == (1, 3)
        assert streak.last_session_date == date(2024, 6, 13)

    @pytest.mark.asyncio
    async def test_earlier_date_is_ignored(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 10), date(2024, 6, 11))
        streak = await record_activity(db_session, user.id, date(2024, 6, 1))
        assert (streak.current_streak, streak.longest_streak) == (2, 2)
        assert streak.last_session_date == date(2024, 6, 11)

    @pytest.mark.asyncio
    async def test_datetime_normalized_to_day(self, db_session, make_user):
        user = await make_user()
        await record_activity(db_session, user.id, datetime(2024, 6, 10, 8, 0, tzinfo=timezone.utc))
        streak = await record_activity(db_session, user.id, datetime(2024, 6, 10, 21, 0, tzinfo=timezone.utc))
        assert streak.current_streak == 1

    @pytest.mark.asyncio
    async def test_concurrent_same_day_not_double_counted(self, database, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 10))

        async def _record() -> None:
            async with get_session_factory()() as db:
                await record_activity(db, user.id, date(2024, 6, 11))

        await asyncio.gather(*(_record() for _ in range(5)))

        async with get_session_factory()() as db:
            streak = await get_streak(db, user.id)
            assert streak is not None
            assert streak.current_streak == 2
            assert streak.longest_streak == 2

    @pytest.mark.asyncio
    async def test_concurrent_first_activity(self, database, make_user):
        user = await make_user()

        async def _record() -> None:
            async with get_session_factory()() as db:
                await record_activity(db, user.id, date(2024, 6, 10))

        await asyncio.gather(*(_record() for _ in range(3)))

        async with get_session_factory()() as db:
            streak = await get_streak(db, user.id)
            assert streak is not None
            assert (streak.current_streak, streak.longest_streak) == (1, 1)


class TestResetIfStale:
    @pytest.mark.asyncio
    async def test_stale_streak_zeroed(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 9), date(2024, 6, 10))
        streak = await reset_if_stale(db_session, user.id, date(2024, 6, 12))
        assert streak.current_streak == 0
        assert streak.longest_streak == 2

    @pytest.mark.asyncio
    async def test_recent_streak_kept(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 10))
        streak = await reset_if_stale(db_session, user.id, date(2024, 6, 11))
        assert streak.current_streak == 1

    @pytest.mark.asyncio
    async def test_idempotent(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 10))
        await reset_if_stale(db_session, user.id, date(2024, 6, 20))
        streak = await reset_if_stale(db_session, user.id, date(2024, 6, 20))
        assert (streak.current_streak, streak.longest_streak) == (0, 1)

    @pytest.mark.asyncio
    async def test_missing_record_provisioned(self, db_session, make_user):
        user = await make_user()
        streak = await reset_if_stale(db_session, user.id, date(2024, 6, 20))
        assert streak.current_streak == 0
        assert streak.last_session_date is None

    @pytest.mark.asyncio
    async def test_activity_after_reset_restarts(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 9), date(2024, 6, 10))
        await reset_if_stale(db_session, user.id, date(2024, 6, 15))
        streak = await record_activity(db_session, user.id, date(2024, 6, 15))
        assert (streak.current_streak, streak.longest_streak) == (1, 2)


class TestDecayStaleStreaks:
    @pytest.mark.asyncio
    async def test_only_lapsed_rows_reset(self, db_session, make_user):
        lapsed = await make_user()
        active = await make_user()
        await _seed(db_session, lapsed.id, date(2024, 6, 10))
        await _seed(db_session, active.id, date(2024, 6, 13))

        reset = await decay_stale_streaks(db_session, date(2024, 6, 14))
        assert reset == 1

        lapsed_streak = await get_streak(db_session, lapsed.id)
        active_streak = await get_streak(db_session, active.id)
        assert lapsed_streak.current_streak == 0
        assert lapsed_streak.longest_streak == 1
        assert active_streak.current_streak == 1

    @pytest.mark.asyncio
    async def test_second_run_resets_nothing(self, db_session, make_user):
        user = await make_user()
        await _seed(db_session, user.id, date(2024, 6, 1))
        assert await decay_stale_streaks(db_session, date(2024, 6, 14)) == 1
        assert await decay_stale_streaks(db_session, date(2024, 6, 14)) == 0
