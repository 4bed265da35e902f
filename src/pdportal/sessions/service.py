"""Read-only session browsing for staff."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.db.models import PDSession, Registration, RegistrationStatus, SessionStatus
from pdportal.errors import NotFoundError

# Statuses staff can see; drafts are admin-only.
VISIBLE_STATUSES = (
    SessionStatus.PUBLISHED.value,
    SessionStatus.FULL.value,
    SessionStatus.COMPLETED.value,
)


def _active_counts():  # noqa: ANN202
    return (
        select(
            Registration.session_id.label("session_id"),
            func.count().label("registration_count"),
        )
        .where(Registration.status == RegistrationStatus.REGISTERED.value)
        .group_by(Registration.session_id)
        .subquery()
    )


async def _user_session_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(
        select(Registration.session_id).where(
            Registration.user_id == user_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
    )
    return set(result.scalars().all())


def _session_dict(session: PDSession, registration_count: int, user_registered: bool) -> dict[str, Any]:
    seats_left = None
    if session.capacity is not None:
        seats_left = max(0, session.capacity - registration_count)
    return {
        "session": session,
        "registration_count": registration_count,
        "seats_left": seats_left,
        "user_registered": user_registered,
    }


async def list_sessions(
    db: AsyncSession,
    user_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[dict[str, Any]]:
    """Visible sessions in date order with active registration counts."""
    counts = _active_counts()
    stmt = (
        select(PDSession, func.coalesce(counts.c.registration_count, 0))
        .outerjoin(counts, counts.c.session_id == PDSession.id)
        .where(PDSession.status.in_(VISIBLE_STATUSES))
        .order_by(PDSession.session_date, PDSession.start_time, PDSession.id)
    )
    if start_date is not None:
        stmt = stmt.where(PDSession.session_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(PDSession.session_date <= end_date)

    result = await db.execute(stmt)
    mine = await _user_session_ids(db, user_id)
    return [
        _session_dict(session, count, session.id in mine)
        for session, count in result.unique().all()
    ]


async def get_session_detail(
    db: AsyncSession,
    session_id: int,
    user_id: int,
    include_drafts: bool = False,
) -> dict[str, Any]:
    counts = _active_counts()
    result = await db.execute(
        select(PDSession, func.coalesce(counts.c.registration_count, 0))
        .outerjoin(counts, counts.c.session_id == PDSession.id)
        .where(PDSession.id == session_id)
    )
    row = result.unique().one_or_none()
    if row is None:
        msg = "Session not found"
        raise NotFoundError(msg)

    session, count = row
    if not include_drafts and session.status not in VISIBLE_STATUSES:
        msg = "Session not found"
        raise NotFoundError(msg)

    mine = await _user_session_ids(db, user_id)
    return _session_dict(session, count, session.id in mine)
