"""V1 API router -- aggregates the deal desk endpoint routers.

Mounted under /api/v1 by the app factory; health checks stay at the root.
"""

from __future__ import annotations

from fastapi import APIRouter

from src.dealdesk.api.v1 import deals, opportunities, sectors, team

router = APIRouter()

router.include_router(deals.router)
router.include_router(opportunities.router)
router.include_router(team.router)
router.include_router(sectors.router)
