"""JWT verification and Actor tests.

Tokens are minted with create_access_token and checked end to end through
the get_current_user dependency.
"""

from __future__ import annotations

from datetime import timedelta

import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient

from src.dealdesk.core.security import (
    SYSTEM_ACTOR,
    Actor,
    actor_from_claims,
    create_access_token,
    verify_token,
)


# ── Token Round Trip ──────────────────────────────────────────────────────────


def test_token_claims_become_actor():
    token = create_access_token(
        {"sub": "u-1", "name": "Dana Whitfield", "email": "dana@example.com", "access_level": "admin"}
    )

    actor = actor_from_claims(verify_token(token))

    assert actor == Actor(
        user_id="u-1", name="Dana Whitfield", email="dana@example.com", access_level="admin"
    )
    assert actor.is_admin


def test_missing_name_falls_back_to_system():
    actor = actor_from_claims(verify_token(create_access_token({"sub": "u-2"})))
    assert actor.display_name == "System"
    assert not actor.is_admin


def test_expired_token_rejected():
    token = create_access_token({"sub": "u-1"}, expires_delta=timedelta(seconds=-5))
    with pytest.raises(HTTPException) as exc_info:
        verify_token(token)
    assert exc_info.value.status_code == 401


def test_wrong_token_type_rejected():
    token = create_access_token({"sub": "u-1"})
    with pytest.raises(HTTPException):
        verify_token(token, token_type="refresh")


def test_token_without_subject_rejected():
    with pytest.raises(HTTPException):
        verify_token(create_access_token({"name": "Nobody"}))


def test_garbage_token_rejected():
    with pytest.raises(HTTPException):
        verify_token("not-a-jwt")


def test_system_actor():
    assert SYSTEM_ACTOR.is_admin
    assert SYSTEM_ACTOR.display_name == "System"
    assert Actor(name="   ").display_name == "System"


# ── Bearer Dependency ─────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_bearer_token_reaches_endpoint(workflow):
    from fastapi import FastAPI

    from src.dealdesk.api.v1.router import router

    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    app.state.deal_workflow = workflow

    token = create_access_token({"sub": "u-analyst", "name": "Sam Ortiz"})
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        ok = await client.get("/api/v1/sectors", headers={"Authorization": f"Bearer {token}"})
        bad = await client.get("/api/v1/sectors", headers={"Authorization": "Bearer nope"})

    assert ok.status_code == 200
    assert "Technology" in ok.json()
    assert bad.status_code == 401
