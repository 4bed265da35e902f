"""Streak tracking: daily attendance transitions and passive decay."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import NamedTuple

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.db.models import Streak
from pdportal.db.upsert import dialect_insert
from pdportal.errors import NotFoundError

logger = structlog.get_logger()


class StreakState(NamedTuple):
    current_streak: int
    longest_streak: int
    last_session_date: date | None


def to_calendar_day(value: date | datetime) -> date:
    """Drop the time of day. Aware datetimes are converted to UTC first."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def advance_streak(state: StreakState, activity_day: date) -> StreakState:
    """Next streak state after activity on ``activity_day``.

    - no prior activity: start at 1
    - same day: unchanged
    - next day: +1, longest follows
    - gap of 2+ days: restart at 1, longest kept
    - earlier than the last recorded day: unchanged (replayed or skewed events are ignored)
    """
    current, longest, last = state
    if last is None:
        return StreakState(1, max(longest, 1), activity_day)

    day_diff = (activity_day - last).days
    if day_diff <= 0:
        return state
    if day_diff == 1:
        current += 1
        return StreakState(current, max(longest, current), activity_day)
    return StreakState(1, longest, activity_day)


def is_stale(last_session_date: date | None, as_of: date) -> bool:
    """True when more than one full day has passed since the last activity."""
    if last_session_date is None:
        return False
    return (as_of - last_session_date).days > 1


async def get_streak(db: AsyncSession, user_id: int) -> Streak | None:
    result = await db.execute(
        select(Streak).where(Streak.user_id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def _lock_streak(db: AsyncSession, user_id: int) -> Streak | None:
    """Read the streak row under a row lock for the rest of the transaction."""
    result = await db.execute(
        select(Streak)
        .where(Streak.user_id == user_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_or_create_streak(db: AsyncSession, user_id: int) -> Streak:
    """Return the user's streak, provisioning an empty one (0, 0, no date) if absent."""
    streak = await get_streak(db, user_id)
    if streak is not None:
        return streak

    stmt = (
        dialect_insert(db, Streak)
        .values(
            user_id=user_id,
            current_streak=0,
            longest_streak=0,
            last_session_date=None,
            updated_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    try:
        await db.execute(stmt)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "User not found"
        raise NotFoundError(msg) from e

    streak = await get_streak(db, user_id)
    if streak is None:
        msg = "Streak could not be provisioned"
        raise NotFoundError(msg)
    return streak


async def record_activity(db: AsyncSession, user_id: int, activity_date: date | datetime) -> Streak:
    """Apply one day of activity to the user's streak.

    Runs in a single transaction holding the streak row lock, so two events for
    the same user cannot both start from the same previous state.
    """
    day = to_calendar_day(activity_date)
    now = datetime.now(timezone.utc)

    streak = await _lock_streak(db, user_id)
    if streak is None:
        streak = Streak(
            user_id=user_id,
            current_streak=1,
            longest_streak=1,
            last_session_date=day,
            updated_at=now,
        )
        db.add(streak)
        try:
            await db.commit()
        except IntegrityError:
            # Another request created the row first; apply our event on top of it.
            await db.rollback()
            streak = await _lock_streak(db, user_id)
            if streak is None:
                msg = "User not found"
                raise NotFoundError(msg) from None
        else:
            logger.info("streak_started", user_id=user_id, day=day.isoformat())
            return streak

    before = StreakState(streak.current_streak, streak.longest_streak, streak.last_session_date)
    after = advance_streak(before, day)

    if before.last_session_date is not None and day < before.last_session_date:
        logger.warning(
            "streak_activity_ignored",
            user_id=user_id,
            day=day.isoformat(),
            last_session_date=before.last_session_date.isoformat(),
        )

    if after != before:
        streak.current_streak = after.current_streak
        streak.longest_streak = after.longest_streak
        streak.last_session_date = after.last_session_date
        streak.updated_at = now

    await db.commit()
    return streak


async def reset_if_stale(db: AsyncSession, user_id: int, as_of_date: date | datetime) -> Streak:
    """Zero the current streak when the last activity is more than a day old. Idempotent."""
    as_of = to_calendar_day(as_of_date)

    streak = await _lock_streak(db, user_id)
    if streak is None:
        await db.rollback()
        return await get_or_create_streak(db, user_id)

    if streak.current_streak > 0 and is_stale(streak.last_session_date, as_of):
        logger.info(
            "streak_reset",
            user_id=user_id,
            previous_streak=streak.current_streak,
            as_of=as_of.isoformat(),
        )
        streak.current_streak = 0
        streak.updated_at = datetime.now(timezone.utc)

    await db.commit()
    return streak


async def decay_stale_streaks(db: AsyncSession, as_of_date: date | datetime) -> int:
    """Bulk version of ``reset_if_stale`` for the nightly job. Returns rows reset."""
    as_of = to_calendar_day(as_of_date)
    cutoff = as_of - timedelta(days=1)

    result = await db.execute(
        update(Streak)
        .where(
            Streak.current_streak > 0,
            Streak.last_session_date.is_not(None),
            Streak.last_session_date < cutoff,
        )
        .values(current_streak=0, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    await db.commit()

    reset = result.rowcount or 0
    logger.info("streak_decay_complete", as_of=as_of.isoformat(), reset=reset)
    return reset
