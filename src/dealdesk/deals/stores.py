"""Store interfaces the deal workflow depends on.

DealRepository / TeamRepository (SQLAlchemy) and DealApiClient (REST)
both satisfy these protocols, so the workflow and the team board never
know which backend they are talking to.
"""

from __future__ import annotations

from typing import Protocol

from src.dealdesk.deals.schemas import (
    CustomSectorRead,
    DealFilter,
    DealInsert,
    DealRead,
    DealUpdate,
)
from src.dealdesk.team.schemas import TaskCreate, TaskRead, UserRead


class DealStore(Protocol):
    async def create_deal(self, data: DealInsert) -> DealRead: ...

    async def get_deal(self, deal_id: str) -> DealRead | None: ...

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]: ...

    async def update_deal(self, deal_id: str, data: DealUpdate) -> DealRead:
        """Apply only the fields set on data. Raises DealNotFoundError."""
        ...

    async def delete_deal(self, deal_id: str) -> bool: ...


class SectorStore(Protocol):
    async def list_custom_sectors(self) -> list[CustomSectorRead]: ...

    async def create_custom_sector(
        self, name: str, created_by: str | None = None
    ) -> CustomSectorRead: ...


class UserDirectory(Protocol):
    async def list_users(self) -> list[UserRead]: ...

    async def get_user(self, user_id: str) -> UserRead | None: ...


class TaskStore(Protocol):
    async def list_tasks(
        self, assigned_to: str | None = None, deal_id: str | None = None
    ) -> list[TaskRead]: ...

    async def create_task(self, data: TaskCreate) -> TaskRead: ...

    async def update_task_status(self, task_id: str, status: str) -> TaskRead:
        """Raises LookupError if the task does not exist."""
        ...
