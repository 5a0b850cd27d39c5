"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
checks whichever backing store the app was started with.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.dealdesk.config import StoreBackend, get_settings
from src.dealdesk.core.database import get_engine
from src.dealdesk.deals.errors import DealPersistenceError

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check the configured store. Returns check results dict."""
    settings = get_settings()
    checks: dict = {"store": settings.STORE_BACKEND.value}

    if settings.STORE_BACKEND == StoreBackend.database:
        try:
            engine = get_engine()
            async with engine.connect() as conn:
                await conn.execute(text("SELECT 1"))
            checks["database"] = "ok"
        except Exception as e:
            checks["database"] = "error"
            checks["database_error"] = str(e)
    else:
        client = getattr(request.app.state, "deal_store", None)
        if client is None:
            checks["deal_api"] = "error"
            checks["deal_api_error"] = "not initialized"
        else:
            try:
                await client.list_custom_sectors()
                checks["deal_api"] = "ok"
            except DealPersistenceError as e:
                checks["deal_api"] = "error"
                checks["deal_api_error"] = str(e)

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: verifies the backing store is reachable.

    Returns 200 if it is, 503 otherwise.
    """
    checks = await _check_dependencies(request)
    healthy = checks.get("database", checks.get("deal_api")) == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "degraded",
            "checks": checks,
        },
    )
