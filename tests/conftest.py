"""Shared fixtures and in-memory test doubles for deal desk tests.

The doubles implement the DealStore / SectorStore / UserDirectory /
TaskStore protocols without a database, and record every update_deal call
so tests can assert that state and audit trail travel in the same write.
"""

from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any

import pytest
import pytest_asyncio

from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import (
    DealNotFoundError,
    DealPersistenceError,
    DealValidationError,
    TaskNotFoundError,
)
from src.dealdesk.deals.schemas import (
    CustomSectorRead,
    DealFilter,
    DealInsert,
    DealRead,
    DealUpdate,
)
from src.dealdesk.deals.service import DealWorkflow
from src.dealdesk.team.schemas import TaskCreate, TaskRead, UserRead


# ── In-Memory Test Doubles ──────────────────────────────────────────────────


class InMemoryDealStore:
    """In-memory DealStore that records writes."""

    def __init__(self, read_delay: float = 0.0) -> None:
        self._deals: dict[str, DealRead] = {}
        self.updates: list[tuple[str, DealUpdate]] = []
        self.fail_creates = False
        self.fail_updates = False
        self.read_delay = read_delay

    async def create_deal(self, data: DealInsert) -> DealRead:
        if self.fail_creates:
            raise DealPersistenceError("Failed to create deal", 500)
        deal = DealRead(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self._deals[deal.id] = deal
        return deal

    async def get_deal(self, deal_id: str) -> DealRead | None:
        if self.read_delay:
            await asyncio.sleep(self.read_delay)
        return self._deals.get(deal_id)

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        filters = filters or DealFilter()
        result = list(self._deals.values())
        if not filters.include_archived:
            result = [d for d in result if not d.is_archived]
        if filters.deal_type:
            result = [d for d in result if d.deal_type == filters.deal_type]
        if filters.stage:
            result = [d for d in result if d.stage == filters.stage]
        if filters.status:
            result = [d for d in result if d.status == filters.status]
        if filters.search:
            needle = filters.search.lower()
            result = [
                d for d in result
                if needle in d.name.lower() or needle in d.client.lower()
                or needle in d.sector.lower()
            ]
        return result

    async def update_deal(self, deal_id: str, data: DealUpdate) -> DealRead:
        if self.fail_updates:
            raise DealPersistenceError("Failed to update deal", 500)
        existing = self._deals.get(deal_id)
        if existing is None:
            raise DealNotFoundError(deal_id)
        self.updates.append((deal_id, data))
        merged: dict[str, Any] = {**existing.model_dump(), **data.changes()}
        updated = DealRead.model_validate(merged)
        self._deals[deal_id] = updated
        return updated

    async def delete_deal(self, deal_id: str) -> bool:
        return self._deals.pop(deal_id, None) is not None


class InMemorySectorStore:
    def __init__(self) -> None:
        self._sectors: list[CustomSectorRead] = []

    async def list_custom_sectors(self) -> list[CustomSectorRead]:
        return list(self._sectors)

    async def create_custom_sector(
        self, name: str, created_by: str | None = None
    ) -> CustomSectorRead:
        if any(s.name.lower() == name.lower() for s in self._sectors):
            raise DealValidationError("This sector already exists")
        sector = CustomSectorRead(
            id=str(uuid.uuid4()),
            name=name,
            created_by=created_by,
            created_at=datetime.now(timezone.utc),
        )
        self._sectors.append(sector)
        return sector


class InMemoryUserDirectory:
    def __init__(self, users: list[UserRead] | None = None) -> None:
        self._users = list(users or [])

    async def list_users(self) -> list[UserRead]:
        return list(self._users)

    async def get_user(self, user_id: str) -> UserRead | None:
        return next((u for u in self._users if u.id == user_id), None)


class InMemoryTaskStore:
    def __init__(self, tasks: list[TaskRead] | None = None) -> None:
        self._tasks = list(tasks or [])

    async def list_tasks(
        self, assigned_to: str | None = None, deal_id: str | None = None
    ) -> list[TaskRead]:
        result = list(self._tasks)
        if assigned_to is not None:
            result = [t for t in result if t.assigned_to == assigned_to]
        if deal_id is not None:
            result = [t for t in result if t.deal_id == deal_id]
        return result

    async def create_task(self, data: TaskCreate) -> TaskRead:
        task = TaskRead(
            id=str(uuid.uuid4()),
            created_at=datetime.now(timezone.utc),
            **data.model_dump(),
        )
        self._tasks.append(task)
        return task

    async def update_task_status(self, task_id: str, status: str) -> TaskRead:
        for i, task in enumerate(self._tasks):
            if task.id == task_id:
                self._tasks[i] = task.model_copy(update={"status": status})
                return self._tasks[i]
        raise TaskNotFoundError(task_id)


class RecordingNotifier:
    """Notifier that keeps every message for assertions."""

    def __init__(self) -> None:
        self.successes: list[str] = []
        self.errors: list[str] = []

    def success(self, message: str, **context: Any) -> None:
        self.successes.append(message)

    def error(self, message: str, **context: Any) -> None:
        self.errors.append(message)


# ── Fixtures ────────────────────────────────────────────────────────────────


ADMIN = Actor(user_id="u-admin", name="Dana Whitfield", email="dana@example.com", access_level="admin")
ANALYST = Actor(user_id="u-analyst", name="Sam Ortiz", email="sam@example.com")
OUTSIDER = Actor(user_id="u-outsider", name="Lee Park", email="lee@example.com")


def make_user(user_id: str, name: str, email: str, **kwargs: Any) -> UserRead:
    return UserRead(id=user_id, name=name, email=email, **kwargs)


@pytest.fixture
def admin() -> Actor:
    return ADMIN


@pytest.fixture
def analyst() -> Actor:
    return ANALYST


@pytest.fixture
def outsider() -> Actor:
    return OUTSIDER


@pytest.fixture
def users() -> list[UserRead]:
    return [
        make_user("u-admin", "Dana Whitfield", "dana@example.com", access_level="admin"),
        make_user("u-analyst", "Sam Ortiz", "sam@example.com"),
        make_user("u-outsider", "Lee Park", "lee@example.com"),
    ]


@pytest.fixture
def deal_store() -> InMemoryDealStore:
    return InMemoryDealStore()


@pytest.fixture
def sector_store() -> InMemorySectorStore:
    return InMemorySectorStore()


@pytest.fixture
def directory(users: list[UserRead]) -> InMemoryUserDirectory:
    return InMemoryUserDirectory(users)


@pytest.fixture
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def workflow(
    deal_store: InMemoryDealStore,
    directory: InMemoryUserDirectory,
    sector_store: InMemorySectorStore,
    notifier: RecordingNotifier,
) -> DealWorkflow:
    return DealWorkflow(
        store=deal_store,
        directory=directory,
        sectors=sector_store,
        notifier=notifier,
    )


@pytest_asyncio.fixture
async def deal(workflow: DealWorkflow, admin: Actor) -> DealRead:
    """A freshly created M&A deal at Origination."""
    from src.dealdesk.deals.schemas import DealCreate

    return await workflow.create_deal(
        DealCreate(name="Project Atlas", client="Northwind Holdings", value=120.0),
        admin,
    )
