"""Registration workflow: register, cancel, attendance.

Lifecycle per (user, session): registered -> cancelled | attended | no-show,
and cancelled -> registered again through a new row. Rows are never deleted.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import BigInteger, DateTime, String, func, insert, literal, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.db.models import PDSession, Registration, RegistrationStatus, SessionStatus
from pdportal.errors import (
    CapacityExceededError,
    DuplicateRegistrationError,
    InvalidStateError,
    NotFoundError,
)

logger = structlog.get_logger()

_registrations = Registration.__table__


def _active_count_subquery(session_id: int):  # noqa: ANN202
    return (
        select(func.count())
        .select_from(_registrations)
        .where(
            _registrations.c.session_id == session_id,
            _registrations.c.status == RegistrationStatus.REGISTERED.value,
        )
        .scalar_subquery()
    )


async def count_active_registrations(db: AsyncSession, session_id: int) -> int:
    result = await db.execute(select(_active_count_subquery(session_id)))
    return result.scalar_one()


async def count_user_session_registrations(db: AsyncSession, user_id: int, session_id: int) -> int:
    """All registration rows (any status) the user has ever had for a session."""
    result = await db.execute(
        select(func.count())
        .select_from(_registrations)
        .where(
            _registrations.c.user_id == user_id,
            _registrations.c.session_id == session_id,
        )
    )
    return result.scalar_one()


async def get_active_registration(db: AsyncSession, user_id: int, session_id: int) -> Registration | None:
    result = await db.execute(
        select(Registration)
        .where(
            Registration.user_id == user_id,
            Registration.session_id == session_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def register(db: AsyncSession, user_id: int, session_id: int) -> Registration:
    """Claim a seat in a published session.

    Checks, in order: session exists, session is published, no active
    registration for this user, a seat is free. The session row is locked for
    the duration, and the seat check and insert are one statement, so two
    requests for the last seat cannot both succeed.

    Raises:
        NotFoundError, InvalidStateError, DuplicateRegistrationError, CapacityExceededError
    """
    result = await db.execute(
        select(PDSession.id, PDSession.status, PDSession.capacity)
        .where(PDSession.id == session_id)
        .with_for_update()
    )
    session_row = result.one_or_none()
    if session_row is None:
        await db.rollback()
        msg = "Session not found"
        raise NotFoundError(msg)

    if session_row.status != SessionStatus.PUBLISHED.value:
        await db.rollback()
        raise InvalidStateError

    if await get_active_registration(db, user_id, session_id) is not None:
        await db.rollback()
        raise DuplicateRegistrationError

    now = datetime.now(timezone.utc)
    source = select(
        literal(session_id, BigInteger()),
        literal(user_id, BigInteger()),
        literal(RegistrationStatus.REGISTERED.value, String()),
        literal(now, DateTime(timezone=True)),
    )
    if session_row.capacity is not None:
        source = source.where(_active_count_subquery(session_id) < session_row.capacity)

    stmt = (
        insert(_registrations)
        .from_select(["session_id", "user_id", "status", "registered_at"], source)
        .returning(_registrations.c.id)
    )
    try:
        result = await db.execute(stmt)
        registration_id = result.scalar_one_or_none()
    except IntegrityError as e:
        await db.rollback()
        # Either a concurrent request won the active-row unique index, or the
        # user row is missing. The session row was already checked above.
        if await get_active_registration(db, user_id, session_id) is not None:
            raise DuplicateRegistrationError from e
        msg = "User not found"
        raise NotFoundError(msg) from e

    if registration_id is None:
        await db.rollback()
        logger.info("registration_rejected_full", user_id=user_id, session_id=session_id)
        raise CapacityExceededError

    await db.commit()
    logger.info("registration_created", user_id=user_id, session_id=session_id, registration_id=registration_id)

    registration = await db.get(Registration, registration_id, populate_existing=True)
    if registration is None:
        msg = "Registration not found"
        raise NotFoundError(msg)
    return registration


async def _transition_active(
    db: AsyncSession,
    user_id: int,
    session_id: int,
    new_status: RegistrationStatus,
) -> Registration:
    """Move the active registration for (user, session) to ``new_status``."""
    result = await db.execute(
        update(Registration)
        .where(
            Registration.user_id == user_id,
            Registration.session_id == session_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
        .values(status=new_status.value, updated_at=datetime.now(timezone.utc))
        .returning(Registration.id)
        .execution_options(synchronize_session=False)
    )
    registration_id = result.scalar_one_or_none()
    if registration_id is None:
        await db.rollback()
        msg = "Registration not found"
        raise NotFoundError(msg)
    await db.commit()

    logger.info(
        "registration_status_changed",
        user_id=user_id,
        session_id=session_id,
        registration_id=registration_id,
        status=new_status.value,
    )
    registration = await db.get(Registration, registration_id, populate_existing=True)
    if registration is None:
        msg = "Registration not found"
        raise NotFoundError(msg)
    return registration


async def cancel(db: AsyncSession, user_id: int, session_id: int) -> Registration:
    """Cancel the user's active registration. The row is kept for audit."""
    return await _transition_active(db, user_id, session_id, RegistrationStatus.CANCELLED)


async def mark_attendance(db: AsyncSession, user_id: int, session_id: int, attended: bool) -> Registration:
    """Record the outcome of an active registration as attended or no-show."""
    new_status = RegistrationStatus.ATTENDED if attended else RegistrationStatus.NO_SHOW
    return await _transition_active(db, user_id, session_id, new_status)


async def list_user_registrations(db: AsyncSession, user_id: int) -> list[Registration]:
    """The user's active registrations in session order."""
    result = await db.execute(
        select(Registration)
        .join(PDSession, Registration.session_id == PDSession.id)
        .where(
            Registration.user_id == user_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
        .order_by(PDSession.session_date, PDSession.start_time)
    )
    return list(result.unique().scalars().all())


async def list_session_registrants(db: AsyncSession, session_id: int) -> list[Registration]:
    """Active registrations for a session, earliest first."""
    session = await db.get(PDSession, session_id)
    if session is None:
        msg = "Session not found"
        raise NotFoundError(msg)

    result = await db.execute(
        select(Registration)
        .where(
            Registration.session_id == session_id,
            Registration.status == RegistrationStatus.REGISTERED.value,
        )
        .order_by(Registration.registered_at, Registration.id)
    )
    return list(result.unique().scalars().all())
