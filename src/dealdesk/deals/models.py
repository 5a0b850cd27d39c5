"""Deal persistence models.

- DealModel: one advisory engagement or prospect; owned collections
  (pod team, tagged investors, attachments, audit trail) live in JSON
  columns and are always written whole.
- CustomSectorModel: user-defined sectors offered next to the base list.

Ids are generated application-side so the same models work on PostgreSQL
and on SQLite.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.dealdesk.core.database import Base


def _uuid_str() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DealModel(Base):
    """Deal record with its owned collections as JSON documents."""

    __tablename__ = "deals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    name: Mapped[str] = mapped_column(String(300), nullable=False)
    deal_type: Mapped[str] = mapped_column(String(50), nullable=False, default="M&A")
    stage: Mapped[str] = mapped_column(String(50), nullable=False, default="Origination")
    value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    client: Mapped[str] = mapped_column(String(300), nullable=False)
    client_contact_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    client_contact_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    client_contact_role: Mapped[str | None] = mapped_column(String(200), nullable=True)
    sector: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    lead: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    progress: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(50), nullable=False, default="Active")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    pod_team: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    tagged_investors: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    audit_trail: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    archived_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    archived_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    archived_reason: Mapped[str | None] = mapped_column(String(200), nullable=True)
    archived_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class CustomSectorModel(Base):
    """User-defined sector name (unique)."""

    __tablename__ = "custom_sectors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid_str)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
