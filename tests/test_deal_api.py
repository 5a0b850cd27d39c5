"""Integration tests for the deal desk API endpoints.

Builds a minimal FastAPI app with the v1 router, overrides authentication,
and wires the conftest in-memory doubles onto app.state. Covers the status
codes each domain failure maps to.
"""

from __future__ import annotations

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from src.dealdesk.api.deps import get_current_user
from src.dealdesk.api.v1.router import router
from src.dealdesk.team.board import TeamBoard


# ── Test Fixtures ────────────────────────────────────────────────────────────


def _make_app() -> FastAPI:
    app = FastAPI()
    app.include_router(router, prefix="/api/v1")
    return app


@pytest.fixture
def acting(admin):
    """Mutable holder for the user the overridden auth dependency returns."""
    return {"user": admin}


@pytest_asyncio.fixture
async def client(workflow, directory, task_store, deal_store, acting):
    app = _make_app()
    app.dependency_overrides[get_current_user] = lambda: acting["user"]
    app.state.deal_workflow = workflow
    app.state.team_board = TeamBoard(directory=directory, tasks=task_store, deals=deal_store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


async def _create(http, **fields):
    body = {"name": "Project Atlas", "client": "Northwind Holdings", "value": 120}
    body.update(fields)
    response = await http.post("/api/v1/deals", json=body)
    assert response.status_code == 201, response.text
    return response.json()


# ── Deals ────────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_create_deal(client):
    data = await _create(client, stage="Negotiation")

    assert data["progress"] == 50
    assert data["audit_trail"][0]["action"] == "Deal Created"
    assert data["audit_trail"][0]["user"] == "Dana Whitfield"


@pytest.mark.asyncio
async def test_create_deal_requires_admin(client, acting, analyst):
    acting["user"] = analyst
    response = await client.post("/api/v1/deals", json={"name": "X", "client": "Y"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_create_deal_blank_name(client):
    response = await client.post("/api/v1/deals", json={"name": " ", "client": "Y"})
    assert response.status_code == 400
    assert "required fields" in response.json()["detail"]


@pytest.mark.asyncio
async def test_list_and_filter_deals(client):
    await _create(client, name="Atlas", stage="Signing")
    await _create(client, name="Beacon", client="Harbor")

    response = await client.get("/api/v1/deals", params={"stage": "Signing"})
    assert [d["name"] for d in response.json()] == ["Atlas"]

    response = await client.get("/api/v1/deals", params={"search": "harbor"})
    assert [d["name"] for d in response.json()] == ["Beacon"]


@pytest.mark.asyncio
async def test_get_deal_not_found(client):
    response = await client.get("/api/v1/deals/missing")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_change_stage_and_audit_trail(client):
    deal = await _create(client)

    response = await client.post(f"/api/v1/deals/{deal['id']}/stage", json={"stage": "Closed"})
    assert response.status_code == 200
    assert response.json()["progress"] == 100

    response = await client.get(f"/api/v1/deals/{deal['id']}/audit-trail")
    actions = [e["action"] for e in response.json()]
    assert actions == ["Stage Changed", "Deal Created"]


@pytest.mark.asyncio
async def test_unknown_stage_is_400(client):
    deal = await _create(client)
    response = await client.post(f"/api/v1/deals/{deal['id']}/stage", json={"stage": "Won"})
    assert response.status_code == 400
    assert "Unknown deal stage" in response.json()["detail"]


@pytest.mark.asyncio
async def test_update_details(client):
    deal = await _create(client)
    response = await client.patch(f"/api/v1/deals/{deal['id']}", json={"value": 200})
    assert response.status_code == 200
    assert response.json()["audit_trail"][-1]["details"] == "Updated value"


@pytest.mark.asyncio
async def test_details_patch_cannot_archive_or_null_required(client):
    deal = await _create(client)
    url = f"/api/v1/deals/{deal['id']}"

    response = await client.patch(url, json={"status": "Archived"})
    assert response.status_code == 400

    response = await client.patch(url, json={"value": None})
    assert response.status_code == 400

    response = await client.get(url)
    assert response.json()["status"] == "Active"


@pytest.mark.asyncio
async def test_non_member_edit_is_403(client, acting, outsider):
    deal = await _create(client)
    acting["user"] = outsider
    response = await client.post(f"/api/v1/deals/{deal['id']}/stage", json={"stage": "Closed"})
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_pipeline(client):
    await _create(client, stage="Execution", value=10)
    await _create(client, stage="Execution", value=5)

    response = await client.get("/api/v1/deals/pipeline")

    data = response.json()
    assert data["stage_counts"]["Execution"] == 2
    assert data["total_value"] == 15.0


# ── Rosters ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_team_member_endpoints(client):
    deal = await _create(client)
    base = f"/api/v1/deals/{deal['id']}/team"

    response = await client.post(base, json={"name": "A", "role": "Analyst"})
    assert response.status_code == 201
    assert len(response.json()["pod_team"]) == 1

    response = await client.delete(f"{base}/5")
    assert response.status_code == 404

    response = await client.delete(f"{base}/0")
    assert response.status_code == 200
    assert response.json()["pod_team"] == []
    assert response.json()["audit_trail"][-1]["action"] == "Team Member Removed"


@pytest.mark.asyncio
async def test_investor_endpoints(client):
    deal = await _create(client)
    base = f"/api/v1/deals/{deal['id']}/investors"

    response = await client.post(base, json={"name": "Ana", "firm": "Blue Peak", "type": "VC"})
    assert response.status_code == 201
    investor_id = response.json()["tagged_investors"][0]["id"]

    response = await client.patch(f"{base}/{investor_id}", json={"status": "Interested"})
    assert response.json()["tagged_investors"][0]["status"] == "Interested"

    response = await client.patch(f"{base}/{investor_id}", json={"status": "Maybe"})
    assert response.status_code == 422

    response = await client.delete(f"{base}/{investor_id}")
    assert response.json()["tagged_investors"] == []


@pytest.mark.asyncio
async def test_upload_without_storage_is_400(client):
    deal = await _create(client)
    response = await client.post(
        f"/api/v1/deals/{deal['id']}/attachments",
        files={"file": ("cim.pdf", b"%PDF", "application/pdf")},
    )
    assert response.status_code == 400


# ── Archive ──────────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_archive_and_restore(client):
    deal = await _create(client)

    response = await client.post(
        f"/api/v1/deals/{deal['id']}/archive", json={"reason": "Client paused"}
    )
    assert response.json()["status"] == "Archived"
    assert (await client.get("/api/v1/deals")).json() == []

    response = await client.post(
        f"/api/v1/deals/{deal['id']}/archive", json={"reason": "Again"}
    )
    assert response.status_code == 409

    response = await client.post(f"/api/v1/deals/{deal['id']}/restore")
    assert response.json()["status"] == "Active"


@pytest.mark.asyncio
async def test_delete_deal(client):
    deal = await _create(client)
    response = await client.delete(f"/api/v1/deals/{deal['id']}")
    assert response.status_code == 204
    assert (await client.get(f"/api/v1/deals/{deal['id']}")).status_code == 404


# ── Opportunities ────────────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_opportunity_flow(client, acting, analyst, admin):
    acting["user"] = analyst
    response = await client.post(
        "/api/v1/opportunities", json={"name": "Harbor", "client": "Harbor Group", "value": 40}
    )
    assert response.status_code == 201
    opp_id = response.json()["id"]

    response = await client.post(
        f"/api/v1/opportunities/{opp_id}/approve", json={"division": "Investment Banking"}
    )
    assert response.status_code == 403

    acting["user"] = admin
    stats = (await client.get("/api/v1/opportunities/stats")).json()
    assert stats["total"] == 1

    response = await client.post(
        f"/api/v1/opportunities/{opp_id}/approve", json={"division": "Investment Banking"}
    )
    assert response.status_code == 200
    assert response.json()["deal_type"] == "M&A"

    response = await client.post(f"/api/v1/opportunities/{opp_id}/reject")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_reject_opportunity(client):
    response = await client.post("/api/v1/opportunities", json={"name": "Drop", "client": "C"})
    opp_id = response.json()["id"]

    response = await client.post(f"/api/v1/opportunities/{opp_id}/reject")
    assert response.status_code == 204
    assert (await client.get("/api/v1/opportunities")).json() == []


# ── Team Board & Sectors ─────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_team_board_and_task_assignment(client):
    deal = await _create(client)

    response = await client.post(
        "/api/v1/team/tasks",
        json={"title": "Build model", "deal_id": deal["id"], "assigned_to": "u-analyst"},
    )
    assert response.status_code == 201
    task = response.json()
    assert task["deal_stage"] == "Origination"

    board = (await client.get("/api/v1/team/board", params={"availability": "Light"})).json()
    assert [e["user"]["id"] for e in board["entries"]] == ["u-analyst"]
    assert board["counts"] == {"Available": 2, "Light": 1, "Busy": 0}

    response = await client.patch(f"/api/v1/team/tasks/{task['id']}", json={"status": "Completed"})
    assert response.json()["status"] == "Completed"

    response = await client.patch("/api/v1/team/tasks/missing", json={"status": "Completed"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_assign_task_missing_fields(client):
    response = await client.post("/api/v1/team/tasks", json={"title": "Build model"})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_list_users(client):
    response = await client.get("/api/v1/users")
    assert {u["id"] for u in response.json()} == {"u-admin", "u-analyst", "u-outsider"}


@pytest.mark.asyncio
async def test_sectors(client):
    response = await client.post("/api/v1/sectors", json={"name": "Aerospace"})
    assert response.status_code == 201
    assert response.json()[-1] == "Aerospace"

    response = await client.post("/api/v1/sectors", json={"name": "aerospace"})
    assert response.status_code == 400


# ── 503 When Not Initialized ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_deals_api_503_when_not_initialized(admin):
    app = _make_app()
    app.dependency_overrides[get_current_user] = lambda: admin
    app.state.deal_workflow = None
    app.state.team_board = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/deals")
        assert response.status_code == 503
        assert "not initialized" in response.json()["detail"]

        response = await client.get("/api/v1/team/board")
        assert response.status_code == 503


@pytest.mark.asyncio
async def test_missing_token_is_401(workflow):
    app = _make_app()
    app.state.deal_workflow = workflow

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/v1/deals")
    assert response.status_code == 401
