"""Request-scoped FastAPI dependencies."""

from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import AsyncSession

from pdportal.database import get_session_factory
from pdportal.redis_client import get_redis_or_none


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """One session per request. Work left uncommitted by a failing handler is rolled back."""
    async with get_session_factory()() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise


async def get_redis_dep() -> AsyncGenerator[object | None, None]:
    """The Redis client, or None when Redis is not configured."""
    yield get_redis_or_none()
