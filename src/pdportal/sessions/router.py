"""Session browsing endpoints."""

from __future__ import annotations

from datetime import date
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.auth.dependencies import Principal, get_current_principal
from pdportal.db.models import UserRole
from pdportal.dependencies import get_db
from pdportal.sessions.schemas import PresenterResponse, SessionListResponse, SessionResponse
from pdportal.sessions.service import get_session_detail, list_sessions

router = APIRouter(prefix="/api/v1", tags=["Sessions"])


def _to_response(item: dict[str, Any]) -> SessionResponse:
    s = item["session"]
    presenter = None
    if s.presenter is not None:
        presenter = PresenterResponse(id=s.presenter.id, name=s.presenter.name, bio=s.presenter.bio)
    return SessionResponse(
        id=s.id,
        title=s.title,
        description=s.description,
        presenter=presenter,
        location=s.location,
        session_date=s.session_date,
        start_time=s.start_time,
        end_time=s.end_time,
        capacity=s.capacity,
        status=s.status,
        registration_count=item["registration_count"],
        seats_left=item["seats_left"],
        user_registered=item["user_registered"],
    )


@router.get("/sessions", response_model=SessionListResponse)
async def browse_sessions(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Published, full and completed sessions in date order."""
    items = await list_sessions(db, principal.user_id, start_date=start_date, end_date=end_date)
    sessions = [_to_response(i) for i in items]
    return SessionListResponse(sessions=sessions, total=len(sessions))


@router.get("/sessions/{session_id}", response_model=SessionResponse)
async def get_session(
    session_id: int,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Single session. Drafts and cancelled sessions are visible to admins and managers only."""
    include_drafts = principal.role in (UserRole.ADMIN, UserRole.MANAGER)
    item = await get_session_detail(db, session_id, principal.user_id, include_drafts=include_drafts)
    return _to_response(item)
