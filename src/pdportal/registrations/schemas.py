"""Pydantic request/response models for registration endpoints."""

from __future__ import annotations

from datetime import date, datetime, time

from pydantic import BaseModel, Field

from pdportal.progression.schemas import UnlockedAchievementResponse


class RegisterRequest(BaseModel):
    session_id: int = Field(..., gt=0)


class AttendanceRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    attended: bool = True


class RegistrationResponse(BaseModel):
    id: int
    session_id: int
    user_id: int
    status: str
    registered_at: datetime
    updated_at: datetime | None = None
    session_title: str | None = None
    session_date: date | None = None
    start_time: time | None = None
    location: str | None = None


class ProgressionUpdate(BaseModel):
    granted_xp: int = 0
    experience: int
    level: int
    current_streak: int
    unlocked: list[UnlockedAchievementResponse] = []


class RegisterResponse(BaseModel):
    registration: RegistrationResponse
    progression: ProgressionUpdate | None = None


class MyRegistrationsResponse(BaseModel):
    registrations: list[RegistrationResponse]
    total: int


class RegistrantResponse(BaseModel):
    registration_id: int
    user_id: int
    email: str
    first_name: str
    last_name: str
    registered_at: datetime


class SessionRegistrantsResponse(BaseModel):
    session_id: int
    registrants: list[RegistrantResponse]
    total: int


class AttendanceResponse(BaseModel):
    registration: RegistrationResponse
    progression: ProgressionUpdate | None = None
