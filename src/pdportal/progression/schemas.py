"""Pydantic request/response models for pet, level, streak and achievement endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field


# --- Pet ---


class PetResponse(BaseModel):
    id: int
    user_id: int
    name: str
    pet_type: str
    level: int
    experience: int
    total_sessions_attended: int
    xp_into_level: int
    xp_to_next_level: int
    progress_percent: float
    next_level: int
    is_max_level: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CreatePetRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    pet_type: str | None = Field(default=None, max_length=50)


class RenamePetRequest(BaseModel):
    name: str = Field(..., max_length=100)


class AddExperienceRequest(BaseModel):
    amount: int = Field(..., gt=0)
    reason: str = "interaction"


class ExperienceHistoryEntry(BaseModel):
    id: int
    amount: int
    reason: str
    session_id: int | None = None
    created_at: datetime | None = None


class ExperienceHistoryResponse(BaseModel):
    entries: list[ExperienceHistoryEntry]
    total: int


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    xp_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]
    max_level: int


# --- Streak ---


class StreakResponse(BaseModel):
    current_streak: int
    longest_streak: int
    last_session_date: date | None = None


# --- Achievements ---


class AchievementDefinitionResponse(BaseModel):
    type: str
    title: str
    description: str
    badge_color: str


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]


class UnlockedAchievementResponse(BaseModel):
    type: str
    title: str
    description: str
    badge_color: str
    unlocked_at: datetime | None = None


class UserAchievementsResponse(BaseModel):
    unlocked: list[UnlockedAchievementResponse]
    total_available: int
    total_unlocked: int


# --- Summary ---


class ProgressSummaryResponse(BaseModel):
    pet: PetResponse
    streak: StreakResponse
    achievements: list[UnlockedAchievementResponse]
    total_achievements: int
