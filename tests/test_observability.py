"""Unit tests for settings, metrics, request logging and health checks.

Tests cover:
- Settings parsing (CORS origins, store backend)
- deal_mutations_total and deal_stage_transitions_total counters
- LoggingMiddleware request ids (fresh or reused)
- /health and /health/ready for the api store backend
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import REGISTRY

from src.dealdesk.api.middleware import LoggingMiddleware
from src.dealdesk.api.v1 import health
from src.dealdesk.config import Settings, StoreBackend
from src.dealdesk.core.monitoring import MetricsMiddleware
from src.dealdesk.deals.errors import DealPersistenceError, UnknownStageError


def _mutations(action: str, outcome: str) -> float:
    value = REGISTRY.get_sample_value(
        "deal_mutations_total", {"action": action, "outcome": outcome}
    )
    return value or 0.0


def _health_app(deal_store=None) -> FastAPI:
    app = FastAPI()
    app.add_middleware(LoggingMiddleware)
    app.add_middleware(MetricsMiddleware)
    app.include_router(health.router)
    app.state.deal_store = deal_store
    return app


# ── Settings ─────────────────────────────────────────────────────────────────


class TestSettings:
    def test_cors_origins_split(self):
        settings = Settings(CORS_ALLOWED_ORIGINS="https://a.example, https://b.example,")
        assert settings.cors_origins() == ["https://a.example", "https://b.example"]

    def test_store_backend_from_string(self):
        settings = Settings(STORE_BACKEND="api", DEAL_API_BASE_URL="http://desk.test")
        assert settings.STORE_BACKEND is StoreBackend.api


# ── Metrics ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_workflow_outcomes_counted(workflow, deal, admin):
    before_ok = _mutations("change_stage", "success")
    before_err = _mutations("change_stage", "error")

    await workflow.change_stage(deal.id, "Execution", admin)
    with pytest.raises(UnknownStageError):
        await workflow.change_stage(deal.id, "Nowhere", admin)

    assert _mutations("change_stage", "success") == before_ok + 1
    assert _mutations("change_stage", "error") == before_err + 1


@pytest.mark.asyncio
async def test_stage_transitions_counted(workflow, deal, admin):
    labels = {"from_stage": "Origination", "to_stage": "Signing"}
    before = REGISTRY.get_sample_value("deal_stage_transitions_total", labels) or 0.0

    await workflow.change_stage(deal.id, "Signing", admin)
    await workflow.change_stage(deal.id, "Signing", admin)

    assert REGISTRY.get_sample_value("deal_stage_transitions_total", labels) == before + 1


# ── Request Logging & Health ─────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health_sets_request_id():
    transport = ASGITransport(app=_health_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        first = await client.get("/health")
        second = await client.get("/health")

    assert first.status_code == 200
    assert first.json()["status"] == "ok"
    assert first.headers["X-Request-ID"] != second.headers["X-Request-ID"]


def _api_settings() -> MagicMock:
    settings = MagicMock()
    settings.STORE_BACKEND = StoreBackend.api
    return settings


@pytest.mark.asyncio
async def test_ready_with_reachable_api_store():
    store = MagicMock()
    store.list_custom_sectors = AsyncMock(return_value=[])

    with patch("src.dealdesk.api.v1.health.get_settings", _api_settings):
        transport = ASGITransport(app=_health_app(store))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health/ready")

    assert response.status_code == 200
    assert response.json()["checks"]["deal_api"] == "ok"


@pytest.mark.asyncio
async def test_ready_degraded_when_api_store_fails():
    store = MagicMock()
    store.list_custom_sectors = AsyncMock(side_effect=DealPersistenceError("Deal API unreachable"))

    with patch("src.dealdesk.api.v1.health.get_settings", _api_settings):
        transport = ASGITransport(app=_health_app(store))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health/ready")

    assert response.status_code == 503
    body = response.json()
    assert body["status"] == "degraded"
    assert body["checks"]["deal_api_error"] == "Deal API unreachable"


@pytest.mark.asyncio
async def test_ready_degraded_when_not_initialized():
    with patch("src.dealdesk.api.v1.health.get_settings", _api_settings):
        transport = ASGITransport(app=_health_app(None))
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.get("/health/ready")

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_incoming_request_id_is_reused():
    transport = ASGITransport(app=_health_app())
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-ID": "req-42"})

    assert response.headers["X-Request-ID"] == "req-42"
