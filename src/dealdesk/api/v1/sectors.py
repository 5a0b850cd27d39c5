"""Sector picker endpoints: base sectors plus user-defined ones."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from src.dealdesk.api.deps import get_current_user, get_workflow, to_http_error
from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import DealError
from src.dealdesk.deals.service import DealWorkflow

router = APIRouter(prefix="/sectors", tags=["sectors"])


class SectorCreateRequest(BaseModel):
    name: str


@router.get("", response_model=list[str])
async def list_sectors(
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> list[str]:
    try:
        return await workflow.list_sectors()
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("", response_model=list[str], status_code=201)
async def add_sector(
    body: SectorCreateRequest,
    user: Actor = Depends(get_current_user),
    workflow: DealWorkflow = Depends(get_workflow),
) -> list[str]:
    """Register a custom sector; returns the updated sector list."""
    try:
        return await workflow.add_custom_sector(body.name, user)
    except DealError as exc:
        raise to_http_error(exc) from exc
