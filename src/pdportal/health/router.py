"""Liveness, readiness and version probes. Exempt from rate limiting."""

from collections.abc import Awaitable, Callable

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.config import get_settings
from pdportal.dependencies import get_db
from pdportal.redis_client import get_redis_or_none

router = APIRouter(tags=["Health"])


async def _probe(check: Callable[[], Awaitable[object]]) -> str:
    try:
        await check()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> dict[str, object]:
    """Database is required; Redis only degrades rate limiting and events."""
    checks: dict[str, str] = {"database": await _probe(lambda: db.execute(text("SELECT 1")))}

    redis = get_redis_or_none()
    checks["redis"] = "not configured" if redis is None else await _probe(redis.ping)

    if checks["database"] != "ok":
        status = "unavailable"
    elif checks["redis"] != "ok":
        status = "degraded"
    else:
        status = "ready"
    return {"status": status, "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {
        "service": "pdportal",
        "version": settings.app_version,
        "environment": settings.environment,
    }
