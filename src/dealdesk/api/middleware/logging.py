"""Structured request logging middleware.

Logs every request with:
- method, path, status_code, duration_ms
- user_id (from the bearer token if present)
- request_id (incoming X-Request-ID or a fresh UUID, echoed on the response
  and bound into structlog contextvars so workflow log lines carry it)

Uses structlog for structured JSON logging in production and
human-readable console output in development.
"""

from __future__ import annotations

import logging
import time
import uuid

import structlog
from fastapi import Request, Response
from jose import JWTError, jwt
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from src.dealdesk.config import Environment, get_settings

logger = structlog.get_logger(__name__)


def configure_structlog() -> None:
    """Configure structlog processors based on environment."""
    settings = get_settings()
    logging.basicConfig(format="%(message)s", level=settings.LOG_LEVEL.upper())

    shared_processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.ENVIRONMENT == Environment.production:
        shared_processors.append(structlog.processors.JSONRenderer())
    else:
        shared_processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=shared_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _token_subject(request: Request) -> str | None:
    """User id from the bearer token, or None (never fails the request)."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    settings = get_settings()
    try:
        payload = jwt.decode(
            auth_header[7:],
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
        )
    except JWTError:
        return None
    return payload.get("sub")


# Successful requests to these paths log at debug level.
_QUIET_PATHS = frozenset({"/health", "/health/ready", "/metrics"})


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs one line per request and tags it with a request id.

    An incoming X-Request-ID (set by the deal desk client or a proxy) is
    reused; otherwise a fresh UUID is issued. The id, method and path are
    bound into structlog contextvars so workflow events such as
    notify.success carry them too.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        started = time.monotonic()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
            user_id=_token_subject(request),
        )

        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request_error",
                status_code=500,
                duration_ms=_elapsed_ms(started),
            )
            raise

        response.headers["X-Request-ID"] = request_id

        status = response.status_code
        if status >= 500:
            log = logger.error
        elif status >= 400:
            log = logger.warning
        elif request.url.path in _QUIET_PATHS:
            log = logger.debug
        else:
            log = logger.info
        log("request_completed", status_code=status, duration_ms=_elapsed_ms(started))

        return response


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)
