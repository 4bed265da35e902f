"""Streak decay arq worker.

Zeroes the current streak of every user whose last attended session is more
than a day old, so dashboards do not show a streak that has already lapsed.
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from arq import cron
from arq.connections import RedisSettings

from pdportal.config import get_settings
from pdportal.database import close_db, get_session_factory, init_db
from pdportal.progression.streak_service import decay_stale_streaks

logger = structlog.get_logger()


async def streak_worker_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Initialize the database engine on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url)
    logger.info("streak_worker_started")


async def streak_worker_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    await close_db()
    logger.info("streak_worker_stopped")


async def nightly_streak_decay(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: reset lapsed streaks. Returns the number of rows reset."""
    today = datetime.now(timezone.utc).date()
    async with get_session_factory()() as db:
        return await decay_stale_streaks(db, today)


class StreakWorkerSettings:
    """arq worker settings for the streak decay scheduler."""

    functions = [nightly_streak_decay]
    cron_jobs = [
        cron(nightly_streak_decay, hour=get_settings().streak_decay_hour_utc, minute=0),
    ]
    on_startup = streak_worker_startup
    on_shutdown = streak_worker_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 1
    job_timeout = 300
