"""Per-client request budgets counted in Redis fixed windows.

Seat-changing calls (register, cancel, attendance) draw from a smaller write
budget than browsing, so a client retrying registrations in a loop cannot
starve everyone else of reads. When Redis is missing or erroring the request
is served unlimited.
"""

import time
from dataclasses import dataclass
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from pdportal.redis_client import get_redis_or_none

logger = structlog.get_logger()

_EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})
_WRITE_METHODS = frozenset({"POST", "PUT", "DELETE"})
_SEAT_PATH_PREFIX = "/api/v1/registrations"


@dataclass(frozen=True)
class RateBudget:
    scope: str
    limit: int


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(
        self,
        app: Any,  # noqa: ANN401
        requests_per_window: int = 100,
        writes_per_window: int = 20,
        window_seconds: int = 60,
    ) -> None:
        super().__init__(app)
        self.read_budget = RateBudget("read", requests_per_window)
        self.write_budget = RateBudget("write", writes_per_window)
        self.window_seconds = window_seconds

    def budget_for(self, request: Request) -> RateBudget | None:
        """The budget a request counts against, or None when it is not limited."""
        path = request.url.path
        if path in _EXEMPT_PATHS or request.method == "OPTIONS":
            return None
        if request.method in _WRITE_METHODS and path.startswith(_SEAT_PATH_PREFIX):
            return self.write_budget
        return self.read_budget

    async def _count(self, redis: Any, key: str) -> int:  # noqa: ANN401
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_seconds + 1)
        results: list[Any] = await pipe.execute()
        return int(results[0])

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        budget = self.budget_for(request)
        redis = get_redis_or_none()
        if budget is None or redis is None:
            return await call_next(request)

        now = int(time.time())
        client_ip = request.client.host if request.client else "unknown"
        key = f"ratelimit:{budget.scope}:{client_ip}:{now // self.window_seconds}"

        try:
            count = await self._count(redis, key)
        except RedisError:
            logger.warning("rate_limit_unavailable", scope=budget.scope, exc_info=True)
            return await call_next(request)

        if count > budget.limit:
            retry_after = self.window_seconds - now % self.window_seconds
            logger.info("rate_limited", scope=budget.scope, client_ip=client_ip, count=count)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later.", "code": "RATE_LIMITED"},
                headers={
                    "Retry-After": str(retry_after),
                    "X-RateLimit-Remaining": "0",
                    "X-RateLimit-Limit": str(budget.limit),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(max(0, budget.limit - count))
        response.headers["X-RateLimit-Limit"] = str(budget.limit)
        return response
