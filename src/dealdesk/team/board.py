"""Team board: who is free, and handing out deal tasks.

TeamBoard joins the user directory with open task counts to produce the
availability view, and creates tasks against a deal's current stage.
"""

from __future__ import annotations

import structlog

from src.dealdesk.core.security import Actor
from src.dealdesk.deals.errors import DealNotFoundError, DealValidationError
from src.dealdesk.deals.stores import DealStore, TaskStore, UserDirectory
from src.dealdesk.team.availability import active_task_count, classify_availability
from src.dealdesk.team.schemas import (
    Availability,
    TaskAssignment,
    TaskCreate,
    TaskRead,
    TaskStatus,
    TeamBoardEntry,
    TeamBoardView,
    UserRead,
)

logger = structlog.get_logger(__name__)

_HIDDEN_STATUSES = frozenset({"suspended"})


class TeamBoard:
    """Availability view and task assignment.

    Args:
        directory: Source of users.
        tasks: Task store to count and create tasks.
        deals: Deal store, used to validate the deal and stamp its stage.
    """

    def __init__(
        self, directory: UserDirectory, tasks: TaskStore, deals: DealStore
    ) -> None:
        self._directory = directory
        self._tasks = tasks
        self._deals = deals

    async def build(self, availability: Availability | str | None = None) -> TeamBoardView:
        """Board entries (optionally one bucket only) plus counts per bucket.

        Counts always cover the whole team, regardless of the filter.
        """
        wanted = Availability(availability) if availability is not None else None
        users = [
            u for u in await self._directory.list_users()
            if u.status not in _HIDDEN_STATUSES
        ]
        tasks = await self._tasks.list_tasks()

        entries: list[TeamBoardEntry] = []
        counts = {bucket.value: 0 for bucket in Availability}
        for user in users:
            active = active_task_count(tasks, user.id)
            bucket = classify_availability(active)
            counts[bucket.value] += 1
            if wanted is None or bucket is wanted:
                entries.append(
                    TeamBoardEntry(user=user, active_tasks=active, availability=bucket)
                )

        return TeamBoardView(entries=entries, counts=counts)

    async def assign_task(self, assignment: TaskAssignment, actor: Actor) -> TaskRead:
        """Create a Pending task on a deal for a team member.

        Raises:
            DealValidationError: Title, assignee or deal missing, or unknown assignee.
            DealNotFoundError: The deal does not exist.
        """
        title = assignment.title.strip()
        if not title or not assignment.assigned_to or not assignment.deal_id:
            raise DealValidationError("Please fill in all required fields")

        user = await self._directory.get_user(assignment.assigned_to)
        if user is None:
            raise DealValidationError(f"Unknown assignee: {assignment.assigned_to}")
        deal = await self._deals.get_deal(assignment.deal_id)
        if deal is None:
            raise DealNotFoundError(assignment.deal_id)

        task = await self._tasks.create_task(
            TaskCreate(
                title=title,
                description=assignment.description,
                deal_id=deal.id,
                deal_stage=deal.stage,
                assigned_to=user.id,
                assigned_by=actor.user_id,
                priority=assignment.priority,
                type=assignment.type,
                due_date=assignment.due_date,
                status=TaskStatus.PENDING,
            )
        )
        logger.info(
            "team.task_assigned",
            task_id=task.id,
            deal_id=deal.id,
            assigned_to=user.id,
        )
        return task

    async def list_tasks(
        self, assigned_to: str | None = None, deal_id: str | None = None
    ) -> list[TaskRead]:
        return await self._tasks.list_tasks(assigned_to=assigned_to, deal_id=deal_id)

    async def update_task_status(self, task_id: str, status: TaskStatus | str) -> TaskRead:
        try:
            value = TaskStatus(status).value
        except ValueError:
            raise DealValidationError(f"Invalid task status: {status!r}") from None
        return await self._tasks.update_task_status(task_id, value)

    async def list_users(self) -> list[UserRead]:
        return await self._directory.list_users()
