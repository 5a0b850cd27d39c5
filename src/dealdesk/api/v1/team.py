"""REST API endpoints for the team board, task assignment and the user directory."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from src.dealdesk.api.deps import get_current_user, get_team_board, to_http_error
from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import DealError
from src.dealdesk.team.board import TeamBoard
from src.dealdesk.team.schemas import (
    Availability,
    TaskAssignment,
    TaskRead,
    TaskStatus,
    TeamBoardView,
    UserRead,
)

router = APIRouter(tags=["team"])


class TaskStatusRequest(BaseModel):
    status: TaskStatus


@router.get("/team/board", response_model=TeamBoardView)
async def get_team_board_view(
    availability: Availability | None = Query(
        default=None, description="Only show one availability bucket"
    ),
    user: Actor = Depends(get_current_user),
    board: TeamBoard = Depends(get_team_board),
) -> TeamBoardView:
    """Team members with open task counts and availability."""
    try:
        return await board.build(availability)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/team/tasks", response_model=list[TaskRead])
async def list_tasks(
    assigned_to: str | None = Query(default=None),
    deal_id: str | None = Query(default=None),
    user: Actor = Depends(get_current_user),
    board: TeamBoard = Depends(get_team_board),
) -> list[TaskRead]:
    try:
        return await board.list_tasks(assigned_to=assigned_to, deal_id=deal_id)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.post("/team/tasks", response_model=TaskRead, status_code=201)
async def assign_task(
    body: TaskAssignment,
    user: Actor = Depends(get_current_user),
    board: TeamBoard = Depends(get_team_board),
) -> TaskRead:
    """Assign a new task on a deal to a team member."""
    try:
        return await board.assign_task(body, user)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.patch("/team/tasks/{task_id}", response_model=TaskRead)
async def update_task_status(
    task_id: str,
    body: TaskStatusRequest,
    user: Actor = Depends(get_current_user),
    board: TeamBoard = Depends(get_team_board),
) -> TaskRead:
    try:
        return await board.update_task_status(task_id, body.status)
    except DealError as exc:
        raise to_http_error(exc) from exc


@router.get("/users", response_model=list[UserRead])
async def list_users(
    user: Actor = Depends(get_current_user),
    board: TeamBoard = Depends(get_team_board),
) -> list[UserRead]:
    try:
        return await board.list_users()
    except DealError as exc:
        raise to_http_error(exc) from exc
