"""FastAPI application factory.

Run with ``uvicorn pdportal.main:app``. The nightly streak decay runs in a
separate arq worker (``arq pdportal.workers.streak_worker.StreakWorkerSettings``).
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from pdportal.config import get_settings
from pdportal.database import close_db, init_db
from pdportal.health.router import router as health_router
from pdportal.middleware import setup_middleware
from pdportal.progression.router import router as progression_router
from pdportal.redis_client import close_redis, init_redis
from pdportal.registrations.router import router as registrations_router
from pdportal.sessions.router import router as sessions_router

logger = structlog.get_logger()

_ROUTERS = (health_router, sessions_router, registrations_router, progression_router)

_OPENAPI_TAGS = [
    {"name": "Sessions", "description": "Browse published PD sessions."},
    {"name": "Registrations", "description": "Seat claims, cancellations and attendance."},
    {"name": "Progression", "description": "Pets, levels, streaks and achievements."},
    {"name": "Health", "description": "Probes for the orchestrator."},
]


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    await init_db(settings.database_url)
    await init_redis(settings.redis_url)
    logger.info("api_started", version=settings.app_version, environment=settings.environment)
    try:
        yield
    finally:
        await close_redis()
        await close_db()
        logger.info("api_stopped")


def create_app() -> FastAPI:
    settings = get_settings()

    app = FastAPI(
        title="PD Portal API",
        description="Professional development session registration and staff progression",
        version=settings.app_version,
        openapi_tags=_OPENAPI_TAGS,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    for router in _ROUTERS:
        app.include_router(router)

    return app


app = create_app()
