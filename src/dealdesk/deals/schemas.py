"""Pydantic schemas for the deal lifecycle.

Defines all structured types for deals and their owned collections:
- Enums: DealStage, DealType, DealStatus, Division, InvestorType, InvestorStatus, AuditAction
- Collections: AuditEntry, PodTeamMember, TaggedInvestor, Attachment
- Store payloads: DealCreate, DealInsert, DealUpdate, DealRead, DealFilter
- Workflow inputs: DealDetailsUpdate, PodTeamMemberCreate, InvestorCreate, OpportunityCreate
- Views: PipelineSummary, OpportunityStats, CustomSectorRead
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


# ── Enums ───────────────────────────────────────────────────────────────────


class DealStage(str, Enum):
    """Fixed, ordered deal stages. Order defines progress."""

    ORIGINATION = "Origination"
    EXECUTION = "Execution"
    NEGOTIATION = "Negotiation"
    DUE_DILIGENCE = "Due Diligence"
    SIGNING = "Signing"
    CLOSED = "Closed"


DEAL_STAGES: tuple[str, ...] = tuple(s.value for s in DealStage)


class DealType(str, Enum):
    """Deal classification. OPPORTUNITY deals await approval."""

    OPPORTUNITY = "Opportunity"
    MERGERS_ACQUISITIONS = "M&A"
    CAPITAL_RAISING = "Capital Raising"
    ASSET_MANAGEMENT = "Asset Management"


class DealStatus(str, Enum):
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    CLOSED = "Closed"
    ARCHIVED = "Archived"


class Division(str, Enum):
    """Division an approved opportunity is routed to."""

    INVESTMENT_BANKING = "Investment Banking"
    ASSET_MANAGEMENT = "Asset Management"


class InvestorType(str, Enum):
    PE = "PE"
    VC = "VC"
    STRATEGIC = "Strategic"
    FAMILY_OFFICE = "Family Office"
    HEDGE_FUND = "Hedge Fund"
    SOVEREIGN_WEALTH = "Sovereign Wealth"


class InvestorStatus(str, Enum):
    CONTACTED = "Contacted"
    INTERESTED = "Interested"
    IN_DD = "In DD"
    TERM_SHEET = "Term Sheet"
    PASSED = "Passed"
    CLOSED = "Closed"


class AuditAction(str, Enum):
    """Fixed vocabulary of audit trail labels."""

    DEAL_CREATED = "Deal Created"
    DEAL_UPDATED = "Deal Updated"
    STAGE_CHANGED = "Stage Changed"
    TEAM_MEMBER_ADDED = "Team Member Added"
    TEAM_MEMBER_REMOVED = "Team Member Removed"
    INVESTOR_TAGGED = "Investor Tagged"
    INVESTOR_STATUS_UPDATED = "Investor Status Updated"
    INVESTOR_REMOVED = "Investor Removed"
    ATTACHMENT_ADDED = "Attachment Added"
    ATTACHMENT_REMOVED = "Attachment Removed"
    OPPORTUNITY_APPROVED = "Opportunity Approved"
    DEAL_ARCHIVED = "Deal Archived"
    DEAL_RESTORED = "Deal Restored"


BASE_SECTORS: tuple[str, ...] = (
    "Technology",
    "Healthcare",
    "Finance",
    "Energy",
    "Consumer",
    "Industrial",
    "Real Estate",
)


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Owned Collections ───────────────────────────────────────────────────────


class AuditEntry(BaseModel):
    """One immutable audit trail entry."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=_new_id)
    timestamp: datetime = Field(default_factory=_utcnow)
    action: str
    user: str = "System"
    details: str = ""


class PodTeamMember(BaseModel):
    """Member of a deal's pod team. user_id links to the user directory."""

    name: str
    role: str
    email: str | None = None
    phone: str | None = None
    slack: str | None = None
    user_id: str | None = None


class PodTeamMemberCreate(BaseModel):
    """Input for adding a pod team member (user_id optional when picked from directory)."""

    name: str = ""
    role: str = ""
    email: str | None = None
    phone: str | None = None
    slack: str | None = None
    user_id: str | None = None


class TaggedInvestor(BaseModel):
    """Investor tagged on a deal."""

    model_config = ConfigDict(use_enum_values=True)

    id: str = Field(default_factory=_new_id)
    name: str
    firm: str
    type: str = InvestorType.PE.value
    status: str = InvestorStatus.CONTACTED.value
    notes: str = ""
    email: str | None = None
    phone: str | None = None
    website: str | None = None


class InvestorCreate(BaseModel):
    """Input for tagging an investor."""

    model_config = ConfigDict(use_enum_values=True)

    name: str = ""
    firm: str = ""
    type: InvestorType = InvestorType.PE
    status: InvestorStatus = InvestorStatus.CONTACTED
    notes: str = ""
    email: str | None = None
    phone: str | None = None
    website: str | None = None


class Attachment(BaseModel):
    """Uploaded file descriptor."""

    id: str = Field(default_factory=_new_id)
    filename: str
    url: str
    size: int = Field(default=0, ge=0)
    content_type: str | None = Field(
        default=None, validation_alias=AliasChoices("content_type", "type")
    )
    uploaded_at: datetime = Field(default_factory=_utcnow)


# ── Deal Payloads ───────────────────────────────────────────────────────────


class DealCreate(BaseModel):
    """Schema for creating a deal."""

    model_config = ConfigDict(use_enum_values=True)

    name: str
    client: str
    sector: str = "Technology"
    value: float = Field(default=0.0, ge=0)
    lead: str = ""
    deal_type: DealType = DealType.MERGERS_ACQUISITIONS
    stage: DealStage = DealStage.ORIGINATION
    status: DealStatus = DealStatus.ACTIVE
    description: str | None = None
    notes: str | None = None
    client_contact_name: str | None = None
    client_contact_email: str | None = None
    client_contact_phone: str | None = None
    client_contact_role: str | None = None
    pod_team: list[PodTeamMember] = Field(default_factory=list)
    tagged_investors: list[TaggedInvestor] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)


class OpportunityCreate(BaseModel):
    """Schema for logging a new opportunity awaiting approval."""

    name: str
    client: str
    sector: str = "Technology"
    value: float = Field(default=0.0, ge=0)
    lead: str = ""
    description: str | None = None
    notes: str | None = None
    attachments: list[Attachment] = Field(default_factory=list)


class DealInsert(DealCreate):
    """Full record handed to a store on create (derived fields filled in)."""

    progress: int = Field(default=0, ge=0, le=100)
    audit_trail: list[AuditEntry] = Field(default_factory=list)


# Owned collections, always written whole.
COLLECTION_FIELDS = ("pod_team", "tagged_investors", "attachments", "audit_trail")


class DealUpdate(BaseModel):
    """Partial write sent to a store. Only explicitly set fields are applied."""

    model_config = ConfigDict(use_enum_values=True)

    name: str | None = None
    client: str | None = None
    sector: str | None = None
    value: float | None = None
    lead: str | None = None
    deal_type: str | None = None
    stage: str | None = None
    progress: int | None = Field(default=None, ge=0, le=100)
    status: str | None = None
    description: str | None = None
    notes: str | None = None
    client_contact_name: str | None = None
    client_contact_email: str | None = None
    client_contact_phone: str | None = None
    client_contact_role: str | None = None
    pod_team: list[PodTeamMember] | None = None
    tagged_investors: list[TaggedInvestor] | None = None
    attachments: list[Attachment] | None = None
    audit_trail: list[AuditEntry] | None = None
    archived_at: datetime | None = None
    archived_by: str | None = None
    archived_reason: str | None = None
    archived_notes: str | None = None

    def changes(self, mode: Literal["python", "json"] = "python") -> dict[str, Any]:
        """Explicitly set fields as a dict.

        Owned collections are dumped whole: exclude_unset would otherwise
        drop nested ids and timestamps filled by default factories.
        """
        values = self.model_dump(mode=mode, exclude_unset=True)
        for field in COLLECTION_FIELDS:
            if field in values:
                items = getattr(self, field) or []
                values[field] = [item.model_dump(mode=mode) for item in items]
        return values


class DealDetailsUpdate(BaseModel):
    """Descriptive fields editable from the deal card."""

    model_config = ConfigDict(use_enum_values=True)

    name: str | None = None
    client: str | None = None
    sector: str | None = None
    value: float | None = Field(default=None, ge=0)
    lead: str | None = None
    status: DealStatus | None = None
    description: str | None = None
    notes: str | None = None
    client_contact_name: str | None = None
    client_contact_email: str | None = None
    client_contact_phone: str | None = None
    client_contact_role: str | None = None


class DealRead(BaseModel):
    """Schema for reading a deal (includes all persisted fields)."""

    id: str
    name: str
    client: str
    sector: str = ""
    value: float = 0.0
    lead: str = ""
    deal_type: str = DealType.MERGERS_ACQUISITIONS.value
    stage: str = DealStage.ORIGINATION.value
    progress: int = 0
    status: str = DealStatus.ACTIVE.value
    description: str | None = None
    notes: str | None = None
    client_contact_name: str | None = None
    client_contact_email: str | None = None
    client_contact_phone: str | None = None
    client_contact_role: str | None = None
    pod_team: list[PodTeamMember] = Field(default_factory=list)
    tagged_investors: list[TaggedInvestor] = Field(default_factory=list)
    attachments: list[Attachment] = Field(default_factory=list)
    audit_trail: list[AuditEntry] = Field(default_factory=list)
    archived_at: datetime | None = None
    archived_by: str | None = None
    archived_reason: str | None = None
    archived_notes: str | None = None
    created_at: datetime | None = None

    @property
    def is_opportunity(self) -> bool:
        return self.deal_type == DealType.OPPORTUNITY.value

    @property
    def is_archived(self) -> bool:
        return self.archived_at is not None


class DealFilter(BaseModel):
    """Filter criteria for listing deals."""

    model_config = ConfigDict(use_enum_values=True)

    deal_type: str | None = None
    stage: str | None = None
    status: str | None = None
    search: str | None = None
    include_archived: bool = False


# ── Views ───────────────────────────────────────────────────────────────────


class PipelineSummary(BaseModel):
    """Active deals grouped by stage, in stage order."""

    stages: dict[str, list[DealRead]] = Field(default_factory=dict)
    stage_counts: dict[str, int] = Field(default_factory=dict)
    total_value: float = 0.0


class OpportunityStats(BaseModel):
    total: int = 0
    total_value: float = 0.0
    pending: int = 0


class CustomSectorRead(BaseModel):
    id: str
    name: str
    created_by: str | None = None
    created_at: datetime | None = None
