"""Achievement unlock ledger with first-unlock-wins inserts."""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.db.models import AchievementUnlock
from pdportal.db.upsert import dialect_insert
from pdportal.errors import NotFoundError
from pdportal.progression.achievements import get_definition, triggered_achievements
from pdportal.redis_client import ACHIEVEMENT_UNLOCKED_CHANNEL, publish_event

logger = structlog.get_logger()


async def list_achievements(db: AsyncSession, user_id: int) -> list[AchievementUnlock]:
    """User's unlocked achievements, newest first."""
    result = await db.execute(
        select(AchievementUnlock)
        .where(AchievementUnlock.user_id == user_id)
        .order_by(AchievementUnlock.unlocked_at.desc(), AchievementUnlock.id.desc())
    )
    return list(result.scalars().all())


async def has_achievement(db: AsyncSession, user_id: int, achievement_type: str) -> bool:
    result = await db.execute(
        select(AchievementUnlock.id).where(
            AchievementUnlock.user_id == user_id,
            AchievementUnlock.achievement_type == achievement_type,
        )
    )
    return result.scalar_one_or_none() is not None


async def _insert_unlock(db: AsyncSession, user_id: int, achievement_type: str) -> int | None:
    """Insert an unlock row; returns its id, or None if the user already had it."""
    stmt = (
        dialect_insert(db, AchievementUnlock)
        .values(
            user_id=user_id,
            achievement_type=achievement_type,
            unlocked_at=datetime.now(timezone.utc),
        )
        .on_conflict_do_nothing(index_elements=["user_id", "achievement_type"])
        .returning(AchievementUnlock.id)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _insert_unlocks(db: AsyncSession, user_id: int, achievement_types: list[str]) -> list[int]:
    """Insert and commit unlock rows, returning the ids that were new.

    Duplicates are absorbed by the conflict clause, so an integrity failure
    here means the user does not exist.
    """
    new_ids: list[int] = []
    try:
        for achievement_type in achievement_types:
            unlock_id = await _insert_unlock(db, user_id, achievement_type)
            if unlock_id is not None:
                new_ids.append(unlock_id)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "User not found"
        raise NotFoundError(msg) from e
    return new_ids


async def unlock_achievement(
    db: AsyncSession,
    redis: object,
    user_id: int,
    achievement_type: str,
) -> AchievementUnlock | None:
    """Unlock a single achievement.

    Returns the new unlock, or None if it was already unlocked or the type is unknown.
    Raises NotFoundError when the user does not exist.
    """
    if get_definition(achievement_type) is None:
        logger.warning("achievement_unknown", achievement_type=achievement_type)
        return None

    new_ids = await _insert_unlocks(db, user_id, [achievement_type])
    if not new_ids:
        return None

    unlock = await db.get(AchievementUnlock, new_ids[0])
    if unlock is not None:
        await _emit_achievement_unlocked(redis, unlock)
    return unlock


async def check_and_unlock(
    db: AsyncSession,
    redis: object,
    user_id: int,
    session_count: int,
    level: int,
    streak: int,
) -> list[AchievementUnlock]:
    """Evaluate every trigger against the given state and unlock what is due.

    Only achievements newly inserted by this call are returned; ones the user
    already had are skipped silently.
    """
    due = [a.value for a in triggered_achievements(session_count, level, streak)]
    new_ids = await _insert_unlocks(db, user_id, due)

    if not new_ids:
        return []

    result = await db.execute(
        select(AchievementUnlock)
        .where(AchievementUnlock.id.in_(new_ids))
        .order_by(AchievementUnlock.id)
    )
    unlocked = list(result.scalars().all())

    for unlock in unlocked:
        logger.info(
            "achievement_unlocked",
            user_id=user_id,
            achievement_type=unlock.achievement_type,
        )
        await _emit_achievement_unlocked(redis, unlock)

    return unlocked


async def _emit_achievement_unlocked(redis: object, unlock: AchievementUnlock) -> None:
    definition = get_definition(unlock.achievement_type)
    await publish_event(
        redis,
        ACHIEVEMENT_UNLOCKED_CHANNEL,
        {
            "user_id": unlock.user_id,
            "achievement_type": unlock.achievement_type,
            "title": definition.title if definition else unlock.achievement_type,
        },
    )
