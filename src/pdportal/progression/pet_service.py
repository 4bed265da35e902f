"""Pet (progression record) store.

Experience is only ever changed by ``add_experience``, which also writes the
audit log entry and the derived level in the same transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.config import get_settings
from pdportal.db.models import ExperienceLog, ExperienceReason, Pet
from pdportal.db.upsert import dialect_insert
from pdportal.errors import ConflictError, InvalidInputError, NotFoundError
from pdportal.progression.level_thresholds import level_for
from pdportal.redis_client import LEVEL_UP_CHANNEL, publish_event

logger = structlog.get_logger()


def _validate_name(name: str) -> str:
    cleaned = name.strip()
    max_length = get_settings().pet_name_max_length
    if not cleaned:
        msg = "Pet name cannot be empty"
        raise InvalidInputError(msg)
    if len(cleaned) > max_length:
        msg = f"Pet name must be at most {max_length} characters"
        raise InvalidInputError(msg)
    return cleaned


async def get_pet(db: AsyncSession, pet_id: int) -> Pet | None:
    """Fetch a pet by ID, always reflecting the latest committed row."""
    return await db.get(Pet, pet_id, populate_existing=True)


async def _require_pet(db: AsyncSession, pet_id: int) -> Pet:
    pet = await get_pet(db, pet_id)
    if pet is None:
        msg = "Pet not found"
        raise NotFoundError(msg)
    return pet


async def get_pet_by_user(db: AsyncSession, user_id: int) -> Pet | None:
    result = await db.execute(
        select(Pet).where(Pet.user_id == user_id).execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def create_pet(
    db: AsyncSession,
    user_id: int,
    name: str | None = None,
    pet_type: str | None = None,
) -> Pet:
    """Create the user's pet at level 1 with no experience.

    Raises:
        ConflictError: The user already has a pet.
        NotFoundError: The user does not exist.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    pet = Pet(
        user_id=user_id,
        name=_validate_name(name or settings.default_pet_name),
        pet_type=pet_type or settings.default_pet_type,
        level=1,
        experience=0,
        total_sessions_attended=0,
        created_at=now,
        updated_at=now,
    )
    db.add(pet)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        if await get_pet_by_user(db, user_id) is not None:
            msg = "User already has a pet"
            raise ConflictError(msg) from e
        msg = "User not found"
        raise NotFoundError(msg) from e

    logger.info("pet_created", user_id=user_id, pet_id=pet.id)
    return pet


async def get_or_create_pet(db: AsyncSession, user_id: int) -> Pet:
    """Return the user's pet, provisioning a default one on first access.

    Concurrent first accesses race on the unique user_id; the loser's insert is
    a no-op and both callers read the same row.
    """
    pet = await get_pet_by_user(db, user_id)
    if pet is not None:
        return pet

    settings = get_settings()
    now = datetime.now(timezone.utc)
    stmt = (
        dialect_insert(db, Pet)
        .values(
            user_id=user_id,
            name=settings.default_pet_name,
            pet_type=settings.default_pet_type,
            level=1,
            experience=0,
            total_sessions_attended=0,
            created_at=now,
            updated_at=now,
        )
        .on_conflict_do_nothing(index_elements=["user_id"])
    )
    try:
        await db.execute(stmt)
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        msg = "User not found"
        raise NotFoundError(msg) from e

    pet = await get_pet_by_user(db, user_id)
    if pet is None:
        msg = "Pet could not be provisioned"
        raise NotFoundError(msg)
    return pet


async def add_experience(
    db: AsyncSession,
    redis: object,
    pet_id: int,
    amount: int,
    reason: str,
    session_id: int | None = None,
) -> Pet:
    """Grant experience to a pet.

    In one transaction:
    1. Increment experience in SQL (no read-modify-write, so concurrent grants are not lost)
    2. Append an experience log entry
    3. Recompute and store the level from the new experience

    Raises:
        InvalidInputError: amount <= 0, unknown reason, or unknown session_id.
        NotFoundError: pet does not exist.
    """
    if amount <= 0:
        msg = "Experience amount must be positive"
        raise InvalidInputError(msg)
    try:
        reason = ExperienceReason(reason)
    except ValueError:
        msg = f"Unknown experience reason: {reason}"
        raise InvalidInputError(msg) from None

    now = datetime.now(timezone.utc)

    result = await db.execute(
        update(Pet)
        .where(Pet.id == pet_id)
        .values(experience=Pet.experience + amount, updated_at=now)
        .returning(Pet.experience, Pet.level, Pet.user_id)
        .execution_options(synchronize_session=False)
    )
    row = result.one_or_none()
    if row is None:
        await db.rollback()
        msg = "Pet not found"
        raise NotFoundError(msg)

    new_experience, old_level, user_id = row

    new_level = level_for(new_experience)
    try:
        db.add(ExperienceLog(
            pet_id=pet_id,
            amount=amount,
            reason=reason.value,
            session_id=session_id,
            created_at=now,
        ))
        await db.execute(
            update(Pet)
            .where(Pet.id == pet_id)
            .values(level=new_level)
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except IntegrityError as e:
        # The pet row matched above, so only the log's session reference can fail.
        await db.rollback()
        msg = f"Unknown session: {session_id}"
        raise InvalidInputError(msg) from e

    logger.info(
        "experience_granted",
        pet_id=pet_id,
        amount=amount,
        reason=reason.value,
        experience=new_experience,
        level=new_level,
    )

    if new_level > old_level:
        await _emit_level_up(redis, user_id, old_level, new_level)

    return await _require_pet(db, pet_id)


async def increment_session_count(db: AsyncSession, pet_id: int) -> Pet:
    """Atomically add one to the pet's session counter."""
    result = await db.execute(
        update(Pet)
        .where(Pet.id == pet_id)
        .values(
            total_sessions_attended=Pet.total_sessions_attended + 1,
            updated_at=datetime.now(timezone.utc),
        )
        .returning(Pet.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        await db.rollback()
        msg = "Pet not found"
        raise NotFoundError(msg)
    await db.commit()

    return await _require_pet(db, pet_id)


async def rename_pet(db: AsyncSession, pet_id: int, name: str) -> Pet:
    """Change the pet's display name. Nothing else is touched."""
    cleaned = _validate_name(name)
    result = await db.execute(
        update(Pet)
        .where(Pet.id == pet_id)
        .values(name=cleaned, updated_at=datetime.now(timezone.utc))
        .returning(Pet.id)
        .execution_options(synchronize_session=False)
    )
    if result.scalar_one_or_none() is None:
        await db.rollback()
        msg = "Pet not found"
        raise NotFoundError(msg)
    await db.commit()

    return await _require_pet(db, pet_id)


async def get_experience_history(db: AsyncSession, pet_id: int, limit: int = 50) -> list[ExperienceLog]:
    """Most recent experience grants for a pet, newest first."""
    result = await db.execute(
        select(ExperienceLog)
        .where(ExperienceLog.pet_id == pet_id)
        .order_by(ExperienceLog.created_at.desc(), ExperienceLog.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def _emit_level_up(redis: object, user_id: int, old_level: int, new_level: int) -> None:
    await publish_event(
        redis,
        LEVEL_UP_CHANNEL,
        {"user_id": user_id, "old_level": old_level, "new_level": new_level},
    )
