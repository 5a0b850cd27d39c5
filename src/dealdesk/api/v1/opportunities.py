"""REST API endpoints for the opportunity approval queue.

Opportunities are deals with deal_type "Opportunity". Approval promotes
them into a division's deal type; rejection deletes them.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.dealdesk.api.deps import get_current_user, get_workflow, to_http_error
from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import DealError
from src.dealdesk.deals.schemas import (
    DealRead,
    Division,
    OpportunityCreate,
    OpportunityStats,
)
from src.dealdesk.deals.service import DealWorkflow

router = APIRouter(prefix="/opportunities", tags=["opportunities"])


class ApproveRequest(BaseModel):
    division: Division


@router.get("", response_model=list[DealRead])
async def list_opportunities(
    search: str | None = Query(default=None, description="Match name, client or sector"),
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> list[DealRead]:
    try:
        return await workflow.list_opportunities(search)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("", response_model=DealRead, status_code=201)
async def create_opportunity(
    body: OpportunityCreate,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Log a new opportunity awaiting approval."""
    try:
        return await workflow.create_opportunity(body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/stats", response_model=OpportunityStats)
async def get_opportunity_stats(
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> OpportunityStats:
    try:
        return await workflow.opportunity_stats()
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("/{deal_id}/approve", response_model=DealRead)
async def approve_opportunity(
    deal_id: str,
    body: ApproveRequest,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> DealRead:
    """Approve into a division: Investment Banking -> M&A, Asset Management -> Asset Management."""
    try:
        return await workflow.approve_opportunity(deal_id, body.division, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("/{deal_id}/reject", status_code=204)
async def reject_opportunity(
    deal_id: str,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> None:
    """Reject an opportunity. The record is permanently deleted."""
    try:
        await workflow.reject_opportunity(deal_id, user)
    except DealError as exc:
        raise to_http_error(exc) from exc
