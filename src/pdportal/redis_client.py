"""Redis client for rate limiting, email throttling and progression events.

Redis is optional at runtime: the API serves requests without it, skipping rate
limits and event publishing, so every caller asks for the client explicitly.
"""

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

LEVEL_UP_CHANNEL = "pubsub:level_up"
ACHIEVEMENT_UNLOCKED_CHANNEL = "pubsub:achievement_unlocked"

_client: redis.Redis | None = None


async def init_redis(url: str) -> None:
    global _client  # noqa: PLW0603
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        health_check_interval=30,
    )
    logger.info("redis_configured", url=url.rsplit("@", 1)[-1])


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


def get_redis() -> redis.Redis:
    """Return the client. Raises RuntimeError when Redis was never configured."""
    if _client is None:
        msg = "Redis not initialized. Call init_redis() first."
        raise RuntimeError(msg)
    return _client


def get_redis_or_none() -> redis.Redis | None:
    return _client


async def publish_event(client: Any, channel: str, payload: dict[str, Any]) -> bool:  # noqa: ANN401
    """Publish a JSON event for dashboard subscribers.

    Delivery is best-effort: with no client, or when Redis errors, the event is
    dropped and False is returned. Callers have already committed their write.
    """
    if client is None:
        return False
    try:
        await client.publish(channel, json.dumps(payload))
    except Exception:
        logger.warning("event_publish_failed", channel=channel, exc_info=True)
        return False
    return True
