"""HTTP middleware stack and exception handlers."""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pdportal.config import Settings
from pdportal.middleware.error_handler import setup_error_handlers
from pdportal.middleware.logging import setup_logging
from pdportal.middleware.rate_limit import RateLimitMiddleware
from pdportal.middleware.request_id import REQUEST_ID_HEADER, RequestIdMiddleware

_CORS_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
_CORS_HEADERS = ["Authorization", "Content-Type", REQUEST_ID_HEADER]
_EXPOSED_HEADERS = [REQUEST_ID_HEADER, "X-RateLimit-Remaining", "X-RateLimit-Limit", "Retry-After"]


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Install logging, error handlers and middleware.

    Middleware added later wraps middleware added earlier. Request-id runs
    outside the rate limiter so rejected requests are still tagged, and CORS is
    outermost so browsers can read 429 bodies.
    """
    setup_logging(settings)
    setup_error_handlers(app)

    app.add_middleware(
        RateLimitMiddleware,
        requests_per_window=settings.rate_limit_requests,
        writes_per_window=settings.rate_limit_write_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=_CORS_METHODS,
        allow_headers=_CORS_HEADERS,
        expose_headers=_EXPOSED_HEADERS,
    )
