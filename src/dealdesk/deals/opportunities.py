"""Opportunity triage: promotion to a division deal or rejection.

State machine:

    Opportunity (pending) --approve(division)--> division deal type (approved)
    Opportunity (pending) --reject-------------> deleted

Approval maps the chosen division to a deal type ("Investment Banking" ->
"M&A", "Asset Management" -> "Asset Management"), resets status to Active
and appends an "Opportunity Approved" audit entry. Rejection is a hard
delete performed by the workflow service. Both transitions are only legal
from the pending state.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from src.dealdesk.deals.audit import append_audit_entry
from src.dealdesk.deals.errors import (
    DealValidationError,
    InvalidOpportunityTransitionError,
)
from src.dealdesk.deals.schemas import (
    AuditAction,
    DealRead,
    DealStatus,
    DealType,
    DealUpdate,
    Division,
    OpportunityStats,
)


class OpportunityState(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


_DIVISION_DEAL_TYPES: dict[Division, DealType] = {
    Division.INVESTMENT_BANKING: DealType.MERGERS_ACQUISITIONS,
    Division.ASSET_MANAGEMENT: DealType.ASSET_MANAGEMENT,
}


def division_deal_type(division: Division | str) -> str:
    """Deal type an opportunity takes when approved into a division."""
    try:
        return _DIVISION_DEAL_TYPES[Division(division)].value
    except ValueError:
        raise DealValidationError(
            f"Unknown division: {division!r}. Expected one of: "
            f"{', '.join(d.value for d in Division)}"
        ) from None


def opportunity_state(deal: DealRead) -> OpportunityState:
    return OpportunityState.PENDING if deal.is_opportunity else OpportunityState.APPROVED


def ensure_pending(deal: DealRead) -> None:
    """Raise unless the deal is still an unapproved opportunity."""
    if opportunity_state(deal) is not OpportunityState.PENDING:
        raise InvalidOpportunityTransitionError(deal.id, deal.deal_type)


def plan_approval(deal: DealRead, division: Division | str, actor: str) -> DealUpdate:
    """Build the single write that promotes an opportunity."""
    ensure_pending(deal)
    deal_type = division_deal_type(division)
    division_name = Division(division).value
    trail = append_audit_entry(
        deal.audit_trail,
        AuditAction.OPPORTUNITY_APPROVED,
        actor,
        f"Approved for {division_name} as {deal_type}",
    )
    return DealUpdate(
        deal_type=deal_type,
        status=DealStatus.ACTIVE.value,
        audit_trail=trail,
    )


def filter_opportunities(
    deals: Sequence[DealRead], search: str | None = None
) -> list[DealRead]:
    """Pending opportunities, optionally narrowed by name/client/sector search."""
    opportunities = [d for d in deals if d.is_opportunity]
    if not search or not search.strip():
        return opportunities
    query = search.strip().lower()
    return [
        d
        for d in opportunities
        if query in d.name.lower()
        or query in d.client.lower()
        or query in (d.sector or "").lower()
    ]


def opportunity_stats(deals: Sequence[DealRead]) -> OpportunityStats:
    opportunities = [d for d in deals if d.is_opportunity]
    return OpportunityStats(
        total=len(opportunities),
        total_value=sum(d.value or 0.0 for d in opportunities),
        pending=sum(1 for d in opportunities if d.status == DealStatus.ACTIVE.value),
    )
