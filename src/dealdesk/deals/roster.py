"""Replace-on-write mutators for a deal's owned collections.

Each function takes the current collection and returns a NEW list plus the
entry that was added, changed or removed; inputs are never modified. The
workflow service persists the returned list together with the matching
audit entry in a single store write.

A lookup miss (index out of range, unknown id) raises
RosterEntryNotFoundError so that no write and no audit entry happen.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence

import structlog

from src.dealdesk.deals.errors import DealValidationError, RosterEntryNotFoundError
from src.dealdesk.deals.schemas import (
    Attachment,
    InvestorCreate,
    InvestorStatus,
    PodTeamMember,
    PodTeamMemberCreate,
    TaggedInvestor,
)
from src.dealdesk.team.schemas import UserRead

logger = structlog.get_logger(__name__)


def _require(**fields: str | None) -> dict[str, str]:
    """Strip the given fields and fail if any is blank."""
    cleaned = {key: (value or "").strip() for key, value in fields.items()}
    missing = [key for key, value in cleaned.items() if not value]
    if missing:
        raise DealValidationError(
            f"Please fill in all required fields: {', '.join(missing)}"
        )
    return cleaned


# ── Pod Team ────────────────────────────────────────────────────────────────


def resolve_user_id(
    name: str, email: str | None, directory: Sequence[UserRead]
) -> str | None:
    """Match a member against the directory by email or name, case-insensitively."""
    email_key = email.strip().lower() if email and email.strip() else None
    name_key = name.strip().lower()
    if email_key:
        for user in directory:
            if user.email and user.email.strip().lower() == email_key:
                return user.id
    for user in directory:
        if user.name.strip().lower() == name_key:
            return user.id
    return None


def validate_team_member(member: PodTeamMemberCreate) -> None:
    """Fail fast on a member missing name or role."""
    _require(name=member.name, role=member.role)


def add_team_member(
    roster: Sequence[PodTeamMember],
    member: PodTeamMemberCreate,
    directory: Sequence[UserRead] = (),
) -> tuple[list[PodTeamMember], PodTeamMember]:
    """Append a member; unmatched members get a generated id (external contact)."""
    required = _require(name=member.name, role=member.role)

    user_id = member.user_id or resolve_user_id(required["name"], member.email, directory)
    if user_id is None:
        user_id = str(uuid.uuid4())
        logger.debug("roster.external_contact", name=required["name"], user_id=user_id)

    added = PodTeamMember(
        name=required["name"],
        role=required["role"],
        email=member.email,
        phone=member.phone,
        slack=member.slack,
        user_id=user_id,
    )
    return [*roster, added], added


def remove_team_member(
    roster: Sequence[PodTeamMember], index: int
) -> tuple[list[PodTeamMember], PodTeamMember]:
    """Remove the member at a position in the roster."""
    if index < 0 or index >= len(roster):
        raise RosterEntryNotFoundError("pod team", index)
    removed = roster[index]
    return [m for i, m in enumerate(roster) if i != index], removed


# ── Investors ───────────────────────────────────────────────────────────────


def tag_investor(
    roster: Sequence[TaggedInvestor], investor: InvestorCreate
) -> tuple[list[TaggedInvestor], TaggedInvestor]:
    required = _require(name=investor.name, firm=investor.firm)
    tagged = TaggedInvestor(
        name=required["name"],
        firm=required["firm"],
        type=investor.type,
        status=investor.status,
        notes=investor.notes,
        email=investor.email,
        phone=investor.phone,
        website=investor.website,
    )
    return [*roster, tagged], tagged


def _find_investor(roster: Sequence[TaggedInvestor], investor_id: str) -> TaggedInvestor:
    for investor in roster:
        if investor.id == investor_id:
            return investor
    raise RosterEntryNotFoundError("tagged investor", investor_id)


def update_investor_status(
    roster: Sequence[TaggedInvestor],
    investor_id: str,
    status: InvestorStatus | str,
) -> tuple[list[TaggedInvestor], TaggedInvestor, str]:
    """Map-replace one investor's status.

    Returns:
        (new roster, updated investor, previous status)
    """
    try:
        new_status = InvestorStatus(status).value
    except ValueError:
        raise DealValidationError(f"Unknown investor status: {status!r}") from None

    current = _find_investor(roster, investor_id)
    updated = current.model_copy(update={"status": new_status})
    new_roster = [updated if inv.id == investor_id else inv for inv in roster]
    return new_roster, updated, current.status


def remove_investor(
    roster: Sequence[TaggedInvestor], investor_id: str
) -> tuple[list[TaggedInvestor], TaggedInvestor]:
    removed = _find_investor(roster, investor_id)
    return [inv for inv in roster if inv.id != investor_id], removed


# ── Attachments ─────────────────────────────────────────────────────────────


def add_attachment(
    attachments: Sequence[Attachment], attachment: Attachment
) -> list[Attachment]:
    return [*attachments, attachment]


def remove_attachment(
    attachments: Sequence[Attachment], attachment_id: str
) -> tuple[list[Attachment], Attachment]:
    for attachment in attachments:
        if attachment.id == attachment_id:
            return [a for a in attachments if a.id != attachment_id], attachment
    raise RosterEntryNotFoundError("attachment", attachment_id)
