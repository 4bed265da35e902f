"""Progression side effects of registration and attendance events."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.config import get_settings
from pdportal.db.models import AchievementUnlock, ExperienceReason, Pet, Streak
from pdportal.progression.achievement_service import check_and_unlock
from pdportal.progression.pet_service import add_experience, get_or_create_pet, increment_session_count
from pdportal.progression.streak_service import get_or_create_streak, record_activity
from pdportal.registrations.service import count_user_session_registrations

logger = structlog.get_logger()


@dataclass
class ProgressionResult:
    pet: Pet
    streak: Streak
    unlocked: list[AchievementUnlock] = field(default_factory=list)
    granted_xp: int = 0


async def apply_registration_progression(
    db: AsyncSession,
    redis: object,
    user_id: int,
    session_id: int,
) -> ProgressionResult:
    """Reward a successful registration.

    Experience and the session counter are granted only for the first
    registration a user makes for a session, so cancelling and re-registering
    does not earn anything twice.
    """
    pet = await get_or_create_pet(db, user_id)
    streak = await get_or_create_streak(db, user_id)

    if await count_user_session_registrations(db, user_id, session_id) > 1:
        logger.info("registration_progression_skipped", user_id=user_id, session_id=session_id)
        return ProgressionResult(pet=pet, streak=streak)

    xp = get_settings().registration_xp
    pet = await add_experience(db, redis, pet.id, xp, ExperienceReason.REGISTRATION, session_id)
    pet = await increment_session_count(db, pet.id)

    unlocked = await check_and_unlock(
        db, redis, user_id,
        session_count=pet.total_sessions_attended,
        level=pet.level,
        streak=streak.current_streak,
    )
    return ProgressionResult(pet=pet, streak=streak, unlocked=unlocked, granted_xp=xp)


async def apply_attendance_progression(
    db: AsyncSession,
    redis: object,
    user_id: int,
    session_id: int,
    activity_date: date | datetime,
) -> ProgressionResult:
    """Reward confirmed attendance: extend the daily streak and grant attendance XP."""
    streak = await record_activity(db, user_id, activity_date)

    xp = get_settings().attendance_xp
    pet = await get_or_create_pet(db, user_id)
    pet = await add_experience(db, redis, pet.id, xp, ExperienceReason.ATTENDANCE, session_id)

    unlocked = await check_and_unlock(
        db, redis, user_id,
        session_count=pet.total_sessions_attended,
        level=pet.level,
        streak=streak.current_streak,
    )
    return ProgressionResult(pet=pet, streak=streak, unlocked=unlocked, granted_xp=xp)
