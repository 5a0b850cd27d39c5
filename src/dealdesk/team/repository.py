"""Team repository -- user directory and task persistence.

Same session_factory pattern as DealRepository. Satisfies the
UserDirectory and TaskStore protocols.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable

import structlog
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.dealdesk.deals.errors import (
    DealPersistenceError,
    DealValidationError,
    TaskNotFoundError,
)
from src.dealdesk.team.models import TaskModel, UserModel
from src.dealdesk.team.schemas import (
    TaskCreate,
    TaskRead,
    TaskStatus,
    UserCreate,
    UserRead,
)

logger = structlog.get_logger(__name__)


def _model_to_user(model: UserModel) -> UserRead:
    return UserRead(
        id=str(model.id),
        name=model.name,
        email=model.email,
        role=model.role,
        job_title=model.job_title,
        access_level=model.access_level,
        status=model.status,
        created_at=model.created_at,
    )


def _model_to_task(model: TaskModel) -> TaskRead:
    return TaskRead(
        id=str(model.id),
        title=model.title,
        description=model.description,
        deal_id=model.deal_id,
        deal_stage=model.deal_stage,
        assigned_to=model.assigned_to,
        assigned_by=model.assigned_by,
        priority=model.priority,
        type=model.type,
        due_date=model.due_date,
        status=model.status,
        attachments=model.attachments or [],
        created_at=model.created_at,
    )


class TeamRepository:
    """Async access to users and tasks.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Users ───────────────────────────────────────────────────────────────

    async def list_users(self) -> list[UserRead]:
        try:
            async for session in self._session_factory():
                result = await session.execute(select(UserModel).order_by(UserModel.name))
                return [_model_to_user(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to list users") from exc

    async def get_user(self, user_id: str) -> UserRead | None:
        try:
            async for session in self._session_factory():
                model = await session.get(UserModel, user_id)
                return _model_to_user(model) if model is not None else None
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to load user") from exc

    async def create_user(self, data: UserCreate) -> UserRead:
        """Add a user to the directory.

        Raises:
            DealValidationError: If the email is already registered.
        """
        try:
            async for session in self._session_factory():
                stmt = select(UserModel).where(
                    func.lower(UserModel.email) == data.email.lower()
                )
                result = await session.execute(stmt)
                if result.scalar_one_or_none() is not None:
                    raise DealValidationError(f"User already exists: {data.email}")

                model = UserModel(**data.model_dump())
                session.add(model)
                await session.commit()
                await session.refresh(model)
                logger.info("user.created", user_id=str(model.id))
                return _model_to_user(model)
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to create user") from exc

    # ── Tasks ───────────────────────────────────────────────────────────────

    async def list_tasks(
        self, assigned_to: str | None = None, deal_id: str | None = None
    ) -> list[TaskRead]:
        try:
            async for session in self._session_factory():
                stmt = select(TaskModel)
                if assigned_to is not None:
                    stmt = stmt.where(TaskModel.assigned_to == assigned_to)
                if deal_id is not None:
                    stmt = stmt.where(TaskModel.deal_id == deal_id)
                stmt = stmt.order_by(TaskModel.created_at.desc())
                result = await session.execute(stmt)
                return [_model_to_task(m) for m in result.scalars().all()]
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to list tasks") from exc

    async def create_task(self, data: TaskCreate) -> TaskRead:
        try:
            async for session in self._session_factory():
                values = data.model_dump(exclude={"attachments"})
                model = TaskModel(
                    **values,
                    attachments=[a.model_dump(mode="json") for a in data.attachments],
                )
                session.add(model)
                await session.commit()
                await session.refresh(model)
                logger.info(
                    "task.created",
                    task_id=str(model.id),
                    assigned_to=model.assigned_to,
                    deal_id=model.deal_id,
                )
                return _model_to_task(model)
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to create task") from exc

    async def update_task_status(self, task_id: str, status: str) -> TaskRead:
        """Move a task to a new status.

        Raises:
            DealValidationError: If status is not a known task status.
            TaskNotFoundError: If the task does not exist.
        """
        try:
            status = TaskStatus(status).value
        except ValueError as exc:
            raise DealValidationError(f"Invalid task status: {status!r}") from exc

        try:
            async for session in self._session_factory():
                model = await session.get(TaskModel, task_id)
                if model is None:
                    raise TaskNotFoundError(task_id)
                model.status = status
                await session.commit()
                await session.refresh(model)
                return _model_to_task(model)
        except SQLAlchemyError as exc:
            raise DealPersistenceError("Failed to update task") from exc
