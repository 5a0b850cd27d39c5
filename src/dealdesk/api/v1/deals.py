"""REST API endpoints for deal lifecycle operations.

Provides deal CRUD, stage changes, pod team and investor rosters,
attachments, archive/restore, the audit trail and a pipeline view. All
endpoints require authentication; every mutation goes through DealWorkflow.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from pydantic import BaseModel, Field

from src.dealdesk.api.deps import get_current_user, get_workflow, to_http_error
from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import DealError
from src.dealdesk.deals.schemas import (
    AuditEntry,
    DealCreate,
    DealDetailsUpdate,
    DealFilter,
    DealRead,
    DealStage,
    InvestorCreate,
    InvestorStatus,
    PipelineSummary,
    PodTeamMemberCreate,
)
from src.dealdesk.deals.service import DealWorkflow

router = APIRouter(prefix="/deals", tags=["deals"])


# ── Request Schemas ──────────────────────────────────────────────────────────


class StageChangeRequest(BaseModel):
    """Request body for moving a deal to another stage."""

    stage: str = Field(..., examples=[s.value for s in DealStage])


class InvestorStatusRequest(BaseModel):
    status: InvestorStatus


class ArchiveRequest(BaseModel):
    reason: str
    notes: str | None = None


# ── Deal Endpoints ───────────────────────────────────────────────────────────


@router.post("", response_model=DealRead, status_code=201)
async def create_deal(
    body: DealCreate,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Create a deal (administrators only)."""
    try:
        return await workflow.create_deal(body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("", response_model=list[DealRead])
async def list_deals(
    deal_type: str | None = Query(default=None, description="Filter by deal type"),
    stage: str | None = Query(default=None, description="Filter by stage"),
    deal_status: str | None = Query(default=None, alias="status", description="Filter by status"),
    search: str | None = Query(default=None, description="Match name, client or sector"),
    include_archived: bool = Query(default=False),
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> list[DealRead]:
    """List deals with optional filters. Archived deals are hidden by default."""
    filters = DealFilter(
        deal_type=deal_type,
        stage=stage,
        status=deal_status,
        search=search,
        include_archived=include_archived,
    )
    try:
        return await workflow.list_deals(filters)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/pipeline", response_model=PipelineSummary)
async def get_pipeline(
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> PipelineSummary:
    """Pipeline view: approved, unarchived deals grouped by stage with counts and totals."""
    try:
        return await workflow.pipeline()
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/{deal_id}", response_model=DealRead)
async def get_deal(
    deal_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.get_deal(deal_id)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.patch("/{deal_id}", response_model=DealRead)
async def update_deal(
    deal_id: str,
    body: DealDetailsUpdate,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Edit descriptive fields. Stage and collections have their own endpoints."""
    try:
        return await workflow.update_details(deal_id, body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.delete("/{deal_id}", status_code=204)
async def delete_deal(
    deal_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> None:
    """Permanently delete a deal (administrators only)."""
    try:
        await workflow.delete_deal(deal_id, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("/{deal_id}/stage", response_model=DealRead)
async def change_stage(
    deal_id: str,
    body: StageChangeRequest,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Move a deal to a stage; progress is recomputed."""
    try:
        return await workflow.change_stage(deal_id, body.stage, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/{deal_id}/audit-trail", response_model=list[AuditEntry])
async def get_audit_trail(
    deal_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> list[AuditEntry]:
    """Audit trail, most recent entry first."""
    try:
        return await workflow.audit_trail(deal_id)
    except DealError as exc:
        raise to_http_error(exc) from exc


# ── Pod Team Endpoints ───────────────────────────────────────────────────────


@router.post("/{deal_id}/team", response_model=DealRead, status_code=201)
async def add_team_member(
    deal_id: str,
    body: PodTeamMemberCreate,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.add_team_member(deal_id, body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.delete("/{deal_id}/team/{index}", response_model=DealRead)
async def remove_team_member(
    deal_id: str,
    index: int,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Remove the pod team member at a roster position."""
    try:
        return await workflow.remove_team_member(deal_id, index, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


# ── Investor Endpoints ───────────────────────────────────────────────────────


@router.post("/{deal_id}/investors", response_model=DealRead, status_code=201)
async def tag_investor(
    deal_id: str,
    body: InvestorCreate,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.tag_investor(deal_id, body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.patch("/{deal_id}/investors/{investor_id}", response_model=DealRead)
async def update_investor_status(
    deal_id: str,
    investor_id: str,
    body: InvestorStatusRequest,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.update_investor_status(deal_id, investor_id, body.status, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.delete("/{deal_id}/investors/{investor_id}", response_model=DealRead)
async def remove_investor(
    deal_id: str,
    investor_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.remove_investor(deal_id, investor_id, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


# ── Attachment Endpoints ─────────────────────────────────────────────────────


@router.post("/{deal_id}/attachments", response_model=DealRead, status_code=201)
async def upload_attachment(
    deal_id: str,
    file: UploadFile = File(...),
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Upload a file (multipart form field "file") and attach it to the deal."""
    if not file.filename:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No file uploaded",
        )
    content = await file.read()
    try:
        return await workflow.upload_attachment(
            deal_id, file.filename, content, user, content_type=file.content_type
        )
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.delete("/{deal_id}/attachments/{attachment_id}", response_model=DealRead)
async def remove_attachment(
    deal_id: str,
    attachment_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.remove_attachment(deal_id, attachment_id, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


# ── Archive Endpoints ────────────────────────────────────────────────────────


@router.post("/{deal_id}/archive", response_model=DealRead)
async def archive_deal(
    deal_id: str,
    body: ArchiveRequest,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Archive a deal (administrators only); it disappears from default listings."""
    try:
        return await workflow.archive_deal(deal_id, user, body.reason, body.notes)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("/{deal_id}/restore", response_model=DealRead)
async def restore_deal(
    deal_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    try:
        return await workflow.restore_deal(deal_id, user)
    except DealError as exc:
        raise to_http_error(exc) from exc
