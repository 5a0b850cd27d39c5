"""Deal repository -- async CRUD for deals and custom sectors.

Provides DealRepository with the session_factory callable pattern. Handles
serialization between Pydantic schemas and SQLAlchemy models. Owned
collections (pod team, investors, attachments, audit trail) are serialized
via model_dump(mode="json") into JSON columns and always replaced whole.

SQLAlchemy failures surface as DealPersistenceError so callers see one
error type regardless of backend.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.dealdesk.deals.errors import (
    DealNotFoundError,
    DealPersistenceError,
    DealValidationError,
)
from src.dealdesk.deals.models import CustomSectorModel, DealModel
from src.dealdesk.deals.schemas import (
    COLLECTION_FIELDS,
    CustomSectorRead,
    DealFilter,
    DealInsert,
    DealRead,
    DealUpdate,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_deal(model: DealModel) -> DealRead:
    """Convert DealModel to DealRead schema."""
    return DealRead(
        id=str(model.id),
        name=model.name,
        client=model.client,
        sector=model.sector or "",
        value=model.value or 0.0,
        lead=model.lead or "",
        deal_type=model.deal_type,
        stage=model.stage,
        progress=model.progress or 0,
        status=model.status,
        description=model.description,
        notes=model.notes,
        client_contact_name=model.client_contact_name,
        client_contact_email=model.client_contact_email,
        client_contact_phone=model.client_contact_phone,
        client_contact_role=model.client_contact_role,
        pod_team=model.pod_team or [],
        tagged_investors=model.tagged_investors or [],
        attachments=model.attachments or [],
        audit_trail=model.audit_trail or [],
        archived_at=model.archived_at,
        archived_by=model.archived_by,
        archived_reason=model.archived_reason,
        archived_notes=model.archived_notes,
        created_at=model.created_at,
    )


def _model_to_sector(model: CustomSectorModel) -> CustomSectorRead:
    return CustomSectorRead(
        id=str(model.id),
        name=model.name,
        created_by=model.created_by,
        created_at=model.created_at,
    )


def _dump_collection(items: list[Any]) -> list[dict[str, Any]]:
    return [item.model_dump(mode="json") for item in items]


def _update_values(data: DealUpdate) -> dict[str, Any]:
    """Column values for the fields explicitly set on data."""
    values = data.changes()
    for field in COLLECTION_FIELDS:
        if field in values:
            values[field] = _dump_collection(getattr(data, field) or [])
    return values


@contextmanager
def _persistence_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error("deal_repository.failed", operation=operation, error=str(exc))
        raise DealPersistenceError(f"Database error during {operation}") from exc


# ── Repository ──────────────────────────────────────────────────────────────


class DealRepository:
    """Async CRUD operations for deals and custom sectors.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Deals ───────────────────────────────────────────────────────────────

    async def create_deal(self, data: DealInsert) -> DealRead:
        """Persist a new deal with its initial collections and audit trail.

        Args:
            data: DealInsert with derived fields (progress, audit trail) filled in.

        Returns:
            DealRead with the generated id and created_at.
        """
        with _persistence_errors("create_deal"):
            async for session in self._session_factory():
                values = data.model_dump(
                    exclude=set(COLLECTION_FIELDS), mode="python"
                )
                model = DealModel(
                    **values,
                    pod_team=_dump_collection(data.pod_team),
                    tagged_investors=_dump_collection(data.tagged_investors),
                    attachments=_dump_collection(data.attachments),
                    audit_trail=_dump_collection(data.audit_trail),
                )
                session.add(model)
                await session.commit()
                await session.refresh(model)
                return _model_to_deal(model)

    async def get_deal(self, deal_id: str) -> DealRead | None:
        """Get a deal by ID.

        Returns:
            DealRead if found, None otherwise.
        """
        with _persistence_errors("get_deal"):
            async for session in self._session_factory():
                model = await session.get(DealModel, deal_id)
                if model is None:
                    return None
                return _model_to_deal(model)

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        """List deals, newest first, with optional filters.

        Archived deals are excluded unless filters.include_archived is set.
        search matches name, client or sector case-insensitively.
        """
        filters = filters or DealFilter()
        with _persistence_errors("list_deals"):
            async for session in self._session_factory():
                stmt = select(DealModel)
                if not filters.include_archived:
                    stmt = stmt.where(DealModel.archived_at.is_(None))
                if filters.deal_type is not None:
                    stmt = stmt.where(DealModel.deal_type == filters.deal_type)
                if filters.stage is not None:
                    stmt = stmt.where(DealModel.stage == filters.stage)
                if filters.status is not None:
                    stmt = stmt.where(DealModel.status == filters.status)
                if filters.search:
                    pattern = f"%{filters.search}%"
                    stmt = stmt.where(
                        or_(
                            DealModel.name.ilike(pattern),
                            DealModel.client.ilike(pattern),
                            DealModel.sector.ilike(pattern),
                        )
                    )
                stmt = stmt.order_by(DealModel.created_at.desc())
                result = await session.execute(stmt)
                return [_model_to_deal(m) for m in result.scalars().all()]

    async def update_deal(self, deal_id: str, data: DealUpdate) -> DealRead:
        """Apply the explicitly set fields of data in one commit.

        Raises:
            DealNotFoundError: If the deal does not exist.
        """
        with _persistence_errors("update_deal"):
            async for session in self._session_factory():
                model = await session.get(DealModel, deal_id)
                if model is None:
                    raise DealNotFoundError(deal_id)

                for key, value in _update_values(data).items():
                    setattr(model, key, value)

                await session.commit()
                await session.refresh(model)
                return _model_to_deal(model)

    async def delete_deal(self, deal_id: str) -> bool:
        """Delete a deal. Returns False if it did not exist."""
        with _persistence_errors("delete_deal"):
            async for session in self._session_factory():
                model = await session.get(DealModel, deal_id)
                if model is None:
                    return False
                await session.delete(model)
                await session.commit()
                return True

    # ── Custom Sectors ──────────────────────────────────────────────────────

    async def list_custom_sectors(self) -> list[CustomSectorRead]:
        with _persistence_errors("list_custom_sectors"):
            async for session in self._session_factory():
                stmt = select(CustomSectorModel).order_by(CustomSectorModel.name)
                result = await session.execute(stmt)
                return [_model_to_sector(m) for m in result.scalars().all()]

    async def create_custom_sector(
        self, name: str, created_by: str | None = None
    ) -> CustomSectorRead:
        """Register a custom sector.

        Raises:
            DealValidationError: If the name is blank or already registered
                (case-insensitive).
        """
        name = name.strip()
        if not name:
            raise DealValidationError("Sector name is required")

        with _persistence_errors("create_custom_sector"):
            async for session in self._session_factory():
                stmt = select(CustomSectorModel).where(
                    func.lower(CustomSectorModel.name) == name.lower()
                )
                result = await session.execute(stmt)
                if result.scalar_one_or_none() is not None:
                    raise DealValidationError("This sector already exists")

                model = CustomSectorModel(name=name, created_by=created_by)
                session.add(model)
                await session.commit()
                await session.refresh(model)
                logger.info("sector.created", name=name)
                return _model_to_sector(model)
