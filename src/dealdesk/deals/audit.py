"""Audit trail construction.

Entries are immutable and the trail is append-only: append_audit_entry()
returns a new list and never touches the one it was given, so callers
persist the full resulting trail in the same write as the change it
describes. Storage order is oldest first; recent_first() gives the
display order.
"""

from __future__ import annotations

from collections.abc import Sequence

from src.dealdesk.core.security import SYSTEM_ACTOR_NAME
from src.dealdesk.deals.schemas import AuditAction, AuditEntry


def make_audit_entry(
    action: AuditAction | str, actor: str | None, details: str
) -> AuditEntry:
    """Create an entry with a fresh id and the current UTC timestamp."""
    label = action.value if isinstance(action, AuditAction) else action
    user = actor.strip() if actor and actor.strip() else SYSTEM_ACTOR_NAME
    return AuditEntry(action=label, user=user, details=details)


def append_audit_entry(
    trail: Sequence[AuditEntry],
    action: AuditAction | str,
    actor: str | None,
    details: str,
) -> list[AuditEntry]:
    """Return a copy of the trail with one new entry appended."""
    return [*trail, make_audit_entry(action, actor, details)]


def recent_first(trail: Sequence[AuditEntry]) -> list[AuditEntry]:
    """Display order: most recent entry first."""
    return list(reversed(trail))
