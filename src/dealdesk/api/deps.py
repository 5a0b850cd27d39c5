"""FastAPI dependency injection for authentication and deal desk services.

These dependencies are used in endpoint function signatures to inject
the authenticated Actor and the services wired onto app.state at startup.
"""

from __future__ import annotations

from fastapi import HTTPException, Request, status

from src.dealdesk.core.security import Actor, actor_from_claims, verify_token
from src.dealdesk.deals.errors import (
    DealError,
    DealPermissionError,
    DealPersistenceError,
    DealValidationError,
    InvalidTransitionError,
)
from src.dealdesk.deals.service import DealWorkflow
from src.dealdesk.team.board import TeamBoard


async def get_current_user(request: Request) -> Actor:
    """Extract the acting user from the Bearer JWT.

    Raises:
        HTTPException(401): If no valid token is provided.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token(auth_header[7:], token_type="access")
    return actor_from_claims(payload)


def get_workflow(request: Request) -> DealWorkflow:
    """Retrieve DealWorkflow from app.state, 503 if not available."""
    workflow = getattr(request.app.state, "deal_workflow", None)
    if workflow is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Deal management not initialized",
        )
    return workflow


def get_team_board(request: Request) -> TeamBoard:
    """Retrieve TeamBoard from app.state, 503 if not available."""
    board = getattr(request.app.state, "team_board", None)
    if board is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Team board not initialized",
        )
    return board


def to_http_error(exc: DealError) -> HTTPException:
    """Map a domain failure onto the HTTP status the client should see."""
    if isinstance(exc, DealValidationError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, DealPermissionError):
        code = status.HTTP_403_FORBIDDEN
    elif isinstance(exc, LookupError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidTransitionError):
        code = status.HTTP_409_CONFLICT
    elif isinstance(exc, DealPersistenceError):
        code = status.HTTP_502_BAD_GATEWAY
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=code, detail=str(exc))
