"""Progression API endpoints: pets, levels, streaks, achievements."""

from __future__ import annotations

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.auth.dependencies import Principal, get_current_principal
from pdportal.config import get_settings
from pdportal.db.models import AchievementUnlock, ExperienceReason, Pet, Streak
from pdportal.dependencies import get_db, get_redis_dep
from pdportal.errors import InvalidInputError, NotFoundError
from pdportal.progression.achievement_service import check_and_unlock, list_achievements
from pdportal.progression.achievements import ACHIEVEMENT_CATALOG, get_definition
from pdportal.progression.level_thresholds import LEVEL_THRESHOLDS, MAX_LEVEL, compute_level
from pdportal.progression.pet_service import (
    add_experience,
    create_pet,
    get_experience_history,
    get_or_create_pet,
    get_pet_by_user,
    rename_pet,
)
from pdportal.progression.schemas import (
    AchievementDefinitionResponse,
    AddExperienceRequest,
    AllAchievementsResponse,
    AllLevelsResponse,
    CreatePetRequest,
    ExperienceHistoryEntry,
    ExperienceHistoryResponse,
    LevelEntry,
    PetResponse,
    ProgressSummaryResponse,
    RenamePetRequest,
    StreakResponse,
    UnlockedAchievementResponse,
    UserAchievementsResponse,
)
from pdportal.progression.streak_service import get_or_create_streak, reset_if_stale

router = APIRouter(prefix="/api/v1", tags=["Progression"])


def pet_to_response(pet: Pet) -> PetResponse:
    summary = compute_level(pet.experience)
    return PetResponse(
        id=pet.id,
        user_id=pet.user_id,
        name=pet.name,
        pet_type=pet.pet_type,
        level=pet.level,
        experience=pet.experience,
        total_sessions_attended=pet.total_sessions_attended,
        xp_into_level=summary["xp_into_level"],
        xp_to_next_level=summary["xp_to_next_level"],
        progress_percent=summary["progress_percent"],
        next_level=summary["next_level"],
        is_max_level=summary["is_max_level"],
        created_at=pet.created_at,
        updated_at=pet.updated_at,
    )


def streak_to_response(streak: Streak) -> StreakResponse:
    return StreakResponse(
        current_streak=streak.current_streak,
        longest_streak=streak.longest_streak,
        last_session_date=streak.last_session_date,
    )


def unlock_to_response(unlock: AchievementUnlock) -> UnlockedAchievementResponse:
    definition = get_definition(unlock.achievement_type)
    return UnlockedAchievementResponse(
        type=unlock.achievement_type,
        title=definition.title if definition else unlock.achievement_type,
        description=definition.description if definition else "",
        badge_color=definition.badge_color if definition else "#6b7280",
        unlocked_at=unlock.unlocked_at,
    )


# ── Public endpoints ──


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """All level thresholds."""
    return AllLevelsResponse(
        levels=[LevelEntry(**t) for t in LEVEL_THRESHOLDS],
        max_level=MAX_LEVEL,
    )


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievement_catalog():
    """The achievement catalog."""
    return AllAchievementsResponse(
        achievements=[
            AchievementDefinitionResponse(
                type=d.type.value,
                title=d.title,
                description=d.description,
                badge_color=d.badge_color,
            )
            for d in ACHIEVEMENT_CATALOG.values()
        ]
    )


# ── Authenticated endpoints ──


@router.get("/pets/progress-summary", response_model=ProgressSummaryResponse)
async def get_progress_summary(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Pet, streak and unlocked achievements in one call. Provisions the pet on first visit."""
    pet = await get_or_create_pet(db, principal.user_id)
    streak = await get_or_create_streak(db, principal.user_id)
    unlocks = await list_achievements(db, principal.user_id)
    return ProgressSummaryResponse(
        pet=pet_to_response(pet),
        streak=streak_to_response(streak),
        achievements=[unlock_to_response(u) for u in unlocks],
        total_achievements=len(ACHIEVEMENT_CATALOG),
    )


@router.get("/pets/my-pet", response_model=PetResponse)
async def get_my_pet(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    pet = await get_or_create_pet(db, principal.user_id)
    return pet_to_response(pet)


@router.post("/pets", response_model=PetResponse, status_code=201)
async def create_my_pet(
    body: CreatePetRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Create the caller's pet. 409 if one already exists."""
    pet = await create_pet(db, principal.user_id, name=body.name, pet_type=body.pet_type)
    await get_or_create_streak(db, principal.user_id)
    return pet_to_response(pet)


@router.put("/pets/name", response_model=PetResponse)
async def rename_my_pet(
    body: RenamePetRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    pet = await get_pet_by_user(db, principal.user_id)
    if pet is None:
        msg = "Pet not found"
        raise NotFoundError(msg)
    pet = await rename_pet(db, pet.id, body.name)
    return pet_to_response(pet)


@router.post("/pets/experience", response_model=PetResponse)
async def interact_with_pet(
    body: AddExperienceRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Grant interaction experience. Registration and attendance XP are server-side only."""
    if body.reason != ExperienceReason.INTERACTION.value:
        msg = "Only interaction experience can be granted directly"
        raise InvalidInputError(msg)
    max_xp = get_settings().max_interaction_xp
    if body.amount > max_xp:
        msg = f"Interaction experience is limited to {max_xp} per request"
        raise InvalidInputError(msg)

    pet = await get_pet_by_user(db, principal.user_id)
    if pet is None:
        msg = "Pet not found"
        raise NotFoundError(msg)

    pet = await add_experience(db, redis, pet.id, body.amount, ExperienceReason.INTERACTION)
    streak = await get_or_create_streak(db, principal.user_id)
    await check_and_unlock(
        db, redis, principal.user_id,
        session_count=pet.total_sessions_attended,
        level=pet.level,
        streak=streak.current_streak,
    )
    return pet_to_response(pet)


@router.get("/pets/experience/history", response_model=ExperienceHistoryResponse)
async def get_my_experience_history(
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    pet = await get_pet_by_user(db, principal.user_id)
    if pet is None:
        return ExperienceHistoryResponse(entries=[], total=0)

    entries = await get_experience_history(db, pet.id, limit=limit)
    return ExperienceHistoryResponse(
        entries=[
            ExperienceHistoryEntry(
                id=e.id,
                amount=e.amount,
                reason=e.reason,
                session_id=e.session_id,
                created_at=e.created_at,
            )
            for e in entries
        ],
        total=len(entries),
    )


@router.get("/users/me/achievements", response_model=UserAchievementsResponse)
async def get_my_achievements(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    unlocks = await list_achievements(db, principal.user_id)
    return UserAchievementsResponse(
        unlocked=[unlock_to_response(u) for u in unlocks],
        total_available=len(ACHIEVEMENT_CATALOG),
        total_unlocked=len(unlocks),
    )


@router.get("/users/me/streak", response_model=StreakResponse)
async def get_my_streak(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Current streak, zeroed first if the last activity is more than a day old."""
    streak = await reset_if_stale(db, principal.user_id, datetime.now(timezone.utc))
    return streak_to_response(streak)
