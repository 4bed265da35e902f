"""Registration endpoints: register, cancel, list, attendance."""

from __future__ import annotations

from collections.abc import Awaitable
from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.auth.dependencies import Principal, get_current_principal, require_roles
from pdportal.config import get_settings
from pdportal.db.models import Registration, UserRole
from pdportal.dependencies import get_db, get_redis_dep
from pdportal.email.service import send_template_email
from pdportal.errors import PortalError
from pdportal.progression.router import unlock_to_response
from pdportal.progression.service import (
    ProgressionResult,
    apply_attendance_progression,
    apply_registration_progression,
)
from pdportal.registrations.schemas import (
    AttendanceRequest,
    AttendanceResponse,
    MyRegistrationsResponse,
    ProgressionUpdate,
    RegisterRequest,
    RegisterResponse,
    RegistrantResponse,
    RegistrationResponse,
    SessionRegistrantsResponse,
)
from pdportal.registrations.service import (
    cancel,
    list_session_registrants,
    list_user_registrations,
    mark_attendance,
    register,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1", tags=["Registrations"])

_staff_managers = require_roles(UserRole.ADMIN, UserRole.MANAGER)


def _registration_response(reg: Registration) -> RegistrationResponse:
    session = reg.session
    return RegistrationResponse(
        id=reg.id,
        session_id=reg.session_id,
        user_id=reg.user_id,
        status=reg.status,
        registered_at=reg.registered_at,
        updated_at=reg.updated_at,
        session_title=session.title if session else None,
        session_date=session.session_date if session else None,
        start_time=session.start_time if session else None,
        location=session.location if session else None,
    )


def _progression_update(result: ProgressionResult) -> ProgressionUpdate:
    return ProgressionUpdate(
        granted_xp=result.granted_xp,
        experience=result.pet.experience,
        level=result.pet.level,
        current_streak=result.streak.current_streak,
        unlocked=[unlock_to_response(u) for u in result.unlocked],
    )


async def _guarded_progression(
    db: AsyncSession,
    pending: Awaitable[ProgressionResult],
    event: str,
    user_id: int,
    session_id: int,
) -> ProgressionUpdate | None:
    """Await a progression step that follows an already committed write.

    The write stands whatever happens here, so failures are logged and
    reported as ``None`` instead of failing the request. A rollback expires
    loaded rows, so callers read what they need from them beforehand.
    """
    try:
        result = await pending
    except PortalError as e:
        logger.warning(event, user_id=user_id, session_id=session_id, error=e.message)
        return None
    except SQLAlchemyError:
        await db.rollback()
        logger.exception(event, user_id=user_id, session_id=session_id)
        return None
    return _progression_update(result)


@router.post("/registrations", response_model=RegisterResponse, status_code=201)
async def register_for_session(
    body: RegisterRequest,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Register the caller for a published session and apply progression rewards."""
    reg = await register(db, principal.user_id, body.session_id)
    response = _registration_response(reg)

    settings = get_settings()
    background_tasks.add_task(
        send_template_email,
        reg.user.email,
        "registration_confirmation",
        {
            "first_name": reg.user.first_name,
            "session_title": reg.session.title,
            "session_date": reg.session.session_date.isoformat(),
            "start_time": reg.session.start_time.strftime("%H:%M"),
            "location": reg.session.location,
            "sessions_url": f"{settings.frontend_base_url}/my-registrations",
        },
    )

    progression = await _guarded_progression(
        db,
        apply_registration_progression(db, redis, principal.user_id, body.session_id),
        "registration_progression_failed",
        principal.user_id,
        body.session_id,
    )

    return RegisterResponse(registration=response, progression=progression)


@router.delete("/registrations/{session_id}", response_model=RegistrationResponse)
async def cancel_registration(
    session_id: int,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    """Cancel the caller's active registration for a session."""
    reg = await cancel(db, principal.user_id, session_id)

    settings = get_settings()
    background_tasks.add_task(
        send_template_email,
        reg.user.email,
        "registration_cancelled",
        {
            "first_name": reg.user.first_name,
            "session_title": reg.session.title,
            "session_date": reg.session.session_date.isoformat(),
            "browse_url": f"{settings.frontend_base_url}/sessions",
        },
    )
    return _registration_response(reg)


@router.get("/registrations/me", response_model=MyRegistrationsResponse)
async def my_registrations(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
):
    regs = await list_user_registrations(db, principal.user_id)
    return MyRegistrationsResponse(
        registrations=[_registration_response(r) for r in regs],
        total=len(regs),
    )


# ── Admin / manager ──


@router.get("/registrations/session/{session_id}", response_model=SessionRegistrantsResponse)
async def session_registrants(
    session_id: int,
    _principal: Principal = Depends(_staff_managers),
    db: AsyncSession = Depends(get_db),
):
    """Active registrants of a session, earliest first."""
    regs = await list_session_registrants(db, session_id)
    return SessionRegistrantsResponse(
        session_id=session_id,
        registrants=[
            RegistrantResponse(
                registration_id=r.id,
                user_id=r.user_id,
                email=r.user.email,
                first_name=r.user.first_name,
                last_name=r.user.last_name,
                registered_at=r.registered_at,
            )
            for r in regs
        ],
        total=len(regs),
    )


@router.post("/registrations/session/{session_id}/attendance", response_model=AttendanceResponse)
async def record_attendance(
    session_id: int,
    body: AttendanceRequest,
    principal: Principal = Depends(_staff_managers),
    db: AsyncSession = Depends(get_db),
    redis: object = Depends(get_redis_dep),
):
    """Mark a registrant as attended or no-show. Attendance extends the streak and grants XP."""
    reg = await mark_attendance(db, body.user_id, session_id, body.attended)
    logger.info(
        "attendance_recorded",
        session_id=session_id,
        user_id=body.user_id,
        attended=body.attended,
        recorded_by=principal.user_id,
    )

    response = _registration_response(reg)
    activity_date = reg.session.session_date if reg.session else datetime.now(timezone.utc)

    progression = None
    if body.attended:
        progression = await _guarded_progression(
            db,
            apply_attendance_progression(db, redis, body.user_id, session_id, activity_date),
            "attendance_progression_failed",
            body.user_id,
            session_id,
        )

    return AttendanceResponse(registration=response, progression=progression)
