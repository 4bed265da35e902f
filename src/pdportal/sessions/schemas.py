"""Pydantic response models for session browsing."""

from __future__ import annotations

from datetime import date, time

from pydantic import BaseModel


class PresenterResponse(BaseModel):
    id: int
    name: str
    bio: str | None = None


class SessionResponse(BaseModel):
    id: int
    title: str
    description: str | None = None
    presenter: PresenterResponse | None = None
    location: str | None = None
    session_date: date
    start_time: time
    end_time: time
    capacity: int | None = None
    status: str
    registration_count: int = 0
    seats_left: int | None = None
    user_registered: bool = False


class SessionListResponse(BaseModel):
    sessions: list[SessionResponse]
    total: int
