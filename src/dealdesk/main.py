"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan wiring of the deal desk services, the health routes and the v1
API router under /api/v1.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from src.dealdesk.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.dealdesk.api.v1 import health
from src.dealdesk.api.v1.router import router as v1_router
from src.dealdesk.config import Settings, StoreBackend, get_settings
from src.dealdesk.core.database import close_db, get_session, init_db
from src.dealdesk.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.dealdesk.deals.attachments import AttachmentStorage
from src.dealdesk.deals.client import DealApiClient
from src.dealdesk.deals.locks import DealLockRegistry
from src.dealdesk.deals.notifications import LogNotifier
from src.dealdesk.deals.repository import DealRepository
from src.dealdesk.deals.service import DealWorkflow
from src.dealdesk.team.board import TeamBoard
from src.dealdesk.team.repository import TeamRepository


async def _build_stores(settings: Settings) -> tuple:
    """(deal store, sector store, user directory, task store) for the backend."""
    if settings.STORE_BACKEND == StoreBackend.api:
        if not settings.DEAL_API_BASE_URL:
            raise ValueError("DEAL_API_BASE_URL is required when STORE_BACKEND=api")
        client = DealApiClient(
            base_url=settings.DEAL_API_BASE_URL,
            token=settings.DEAL_API_TOKEN,
            timeout=settings.DEAL_API_TIMEOUT,
        )
        return client, client, client, client

    await init_db()
    deal_repository = DealRepository(session_factory=get_session)
    team_repository = TeamRepository(session_factory=get_session)
    return deal_repository, deal_repository, team_repository, team_repository


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: wire stores and services on startup, close on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()

    # Initialize Sentry if DSN is configured
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    # ── Deal Desk Initialization ────────────────────────────────────────
    try:
        deal_store, sector_store, directory, task_store = await _build_stores(settings)
        attachments = AttachmentStorage(
            upload_dir=settings.UPLOAD_DIR,
            url_prefix=settings.UPLOAD_URL_PREFIX,
            max_bytes=settings.MAX_UPLOAD_BYTES,
        )
        app.state.deal_store = deal_store
        app.state.deal_workflow = DealWorkflow(
            store=deal_store,
            directory=directory,
            sectors=sector_store,
            notifier=LogNotifier(),
            locks=DealLockRegistry(),
            attachments=attachments,
        )
        app.state.team_board = TeamBoard(
            directory=directory, tasks=task_store, deals=deal_store
        )
        log.info("dealdesk.initialized", store=settings.STORE_BACKEND.value)
    except Exception:
        log.warning("dealdesk.init_failed", exc_info=True)
        app.state.deal_store = None
        app.state.deal_workflow = None
        app.state.team_board = None

    yield

    await close_db()
    log.info("dealdesk.shutdown")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Deal Desk API",
        version="0.1.0",
        description="Deal lifecycle, audit trail and team board service",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins() or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(health.router)
    app.include_router(v1_router, prefix="/api/v1")

    # Uploaded attachments
    Path(settings.UPLOAD_DIR).mkdir(parents=True, exist_ok=True)
    app.mount(
        settings.UPLOAD_URL_PREFIX,
        StaticFiles(directory=settings.UPLOAD_DIR),
        name="uploads",
    )

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
