"""Deal workflow -- the one place deal mutations happen.

Every mutation follows the same shape:

    hold the deal's lock -> re-read the deal from the store -> authorize
    -> compute the new field values and the extended audit trail
    -> write both in ONE update_deal call

so the stored state and its audit trail can never diverge, and two edits
to the same deal in this process cannot lose each other's changes. Missing
roster entries and unknown stages raise before anything is written.

Outcomes are reported to the injected Notifier and counted in the
deal_mutations_total metric. Nothing is retried.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

import structlog

from src.dealdesk.core.monitoring import record_deal_mutation, record_stage_transition
from src.dealdesk.core.security import Actor
from src.dealdesk.deals import opportunities, roster
from src.dealdesk.deals.attachments import AttachmentStorage
from src.dealdesk.deals.audit import append_audit_entry, recent_first
from src.dealdesk.deals.errors import (
    DealError,
    DealNotFoundError,
    DealPermissionError,
    DealValidationError,
    InvalidTransitionError,
)
from src.dealdesk.deals.locks import DealLockRegistry
from src.dealdesk.deals.notifications import LogNotifier, Notifier
from src.dealdesk.deals.progression import stage_index, stage_progress, summarize_pipeline
from src.dealdesk.deals.schemas import (
    BASE_SECTORS,
    DEAL_STAGES,
    Attachment,
    AuditAction,
    AuditEntry,
    DealCreate,
    DealDetailsUpdate,
    DealFilter,
    DealInsert,
    DealRead,
    DealStage,
    DealStatus,
    DealType,
    DealUpdate,
    Division,
    InvestorCreate,
    InvestorStatus,
    OpportunityCreate,
    OpportunityStats,
    PipelineSummary,
    PodTeamMemberCreate,
)
from src.dealdesk.deals.stores import DealStore, SectorStore, UserDirectory

logger = structlog.get_logger(__name__)

UpdatePlan = Callable[[DealRead], DealUpdate | None]

# Detail fields backed by NOT NULL columns.
_REQUIRED_DETAILS = ("name", "client", "sector", "value", "lead", "status")


def is_pod_member(deal: DealRead, actor: Actor) -> bool:
    """True if the actor sits on the deal's pod team (by id, email or name)."""
    email = (actor.email or "").strip().lower()
    name = actor.display_name.lower()
    for member in deal.pod_team:
        if actor.user_id and member.user_id == actor.user_id:
            return True
        if email and (member.email or "").strip().lower() == email:
            return True
        if member.name.strip().lower() == name:
            return True
    return False


class DealWorkflow:
    """Deal lifecycle operations over a DealStore.

    Args:
        store: Backing deal store (repository or API client).
        directory: User directory for resolving pod team user ids.
        sectors: Custom sector store; sector registration is skipped without one.
        notifier: Receives success/error messages per user action.
        locks: Per-deal lock registry (one per process).
        attachments: File storage for uploads.
        stages: Ordered stage list used for progress.
    """

    def __init__(
        self,
        store: DealStore,
        directory: UserDirectory | None = None,
        sectors: SectorStore | None = None,
        notifier: Notifier | None = None,
        locks: DealLockRegistry | None = None,
        attachments: AttachmentStorage | None = None,
        stages: Sequence[str] = DEAL_STAGES,
    ) -> None:
        self._store = store
        self._directory = directory
        self._sectors = sectors
        self._notifier = notifier or LogNotifier()
        self._locks = locks or DealLockRegistry()
        self._attachments = attachments
        self._stages = tuple(stages)

    # ── Plumbing ────────────────────────────────────────────────────────────

    @contextmanager
    def _reporting(
        self, action: str, success: str, failure: str, **context: Any
    ) -> Iterator[None]:
        try:
            yield
        except DealError as exc:
            record_deal_mutation(action, "error")
            self._notifier.error(f"{failure}: {exc}", action=action, **context)
            raise
        record_deal_mutation(action, "success")
        self._notifier.success(success, action=action, **context)

    async def _require_deal(self, deal_id: str) -> DealRead:
        deal = await self._store.get_deal(deal_id)
        if deal is None:
            raise DealNotFoundError(deal_id)
        return deal

    @staticmethod
    def _require_admin(actor: Actor, operation: str) -> None:
        if not actor.is_admin:
            raise DealPermissionError(f"Only administrators can {operation}")

    @staticmethod
    def _authorize_edit(deal: DealRead, actor: Actor) -> None:
        if actor.is_admin or is_pod_member(deal, actor):
            return
        raise DealPermissionError("You can only update deals you are assigned to")

    async def _mutate(
        self,
        deal_id: str,
        actor: Actor,
        plan: UpdatePlan,
        *,
        admin_operation: str | None = None,
    ) -> DealRead:
        """Run plan against a fresh read of the deal and write its result.

        plan returns None when there is nothing to change; no write happens.
        """
        async with self._locks.hold(deal_id):
            deal = await self._require_deal(deal_id)
            if admin_operation is not None:
                self._require_admin(actor, admin_operation)
            else:
                self._authorize_edit(deal, actor)

            update = plan(deal)
            if update is None:
                logger.debug("deal.unchanged", deal_id=deal_id)
                return deal

            updated = await self._store.update_deal(deal_id, update)

        logger.info(
            "deal.mutated",
            deal_id=deal_id,
            fields=sorted(update.model_fields_set),
            actor=actor.display_name,
        )
        return updated

    def _trail(
        self, deal: DealRead, action: AuditAction, actor: Actor, details: str
    ) -> list[AuditEntry]:
        return append_audit_entry(deal.audit_trail, action, actor.display_name, details)

    # ── Creation ────────────────────────────────────────────────────────────

    async def create_deal(self, data: DealCreate, actor: Actor) -> DealRead:
        """Create a deal with progress derived from its stage and one audit entry."""
        with self._reporting("create_deal", "Deal created", "Failed to create deal"):
            self._require_admin(actor, "create deals")
            name = data.name.strip()
            client = data.client.strip()
            if not name or not client:
                raise DealValidationError("Please fill in all required fields: name, client")

            insert = DealInsert(
                **data.model_dump(exclude={"name", "client"}),
                name=name,
                client=client,
                progress=stage_progress(data.stage, self._stages),
                audit_trail=append_audit_entry(
                    [], AuditAction.DEAL_CREATED, actor.display_name, f"Created deal {name}"
                ),
            )
            deal = await self._store.create_deal(insert)
            await self._register_sector(deal.sector, actor)

        logger.info("deal.created", deal_id=deal.id, stage=deal.stage, deal_type=deal.deal_type)
        return deal

    async def create_opportunity(self, data: OpportunityCreate, actor: Actor) -> DealRead:
        """Log a prospect awaiting approval. Any authenticated user may do this."""
        with self._reporting(
            "create_opportunity", "Opportunity logged", "Failed to create opportunity"
        ):
            name = data.name.strip()
            client = data.client.strip()
            if not name or not client:
                raise DealValidationError("Please fill in all required fields: name, client")

            insert = DealInsert(
                name=name,
                client=client,
                sector=data.sector,
                value=data.value,
                lead=data.lead or actor.display_name,
                deal_type=DealType.OPPORTUNITY,
                stage=DealStage.ORIGINATION,
                status=DealStatus.ACTIVE,
                description=data.description,
                notes=data.notes,
                attachments=data.attachments,
                progress=stage_progress(DealStage.ORIGINATION, self._stages),
                audit_trail=append_audit_entry(
                    [], AuditAction.DEAL_CREATED, actor.display_name, f"Logged opportunity {name}"
                ),
            )
            await self._register_sector(insert.sector, actor)
            deal = await self._store.create_deal(insert)

        logger.info("opportunity.created", deal_id=deal.id)
        return deal

    # ── Queries ─────────────────────────────────────────────────────────────

    async def get_deal(self, deal_id: str) -> DealRead:
        return await self._require_deal(deal_id)

    async def list_deals(self, filters: DealFilter | None = None) -> list[DealRead]:
        return await self._store.list_deals(filters)

    async def audit_trail(self, deal_id: str) -> list[AuditEntry]:
        """Audit trail in display order (most recent first)."""
        deal = await self._require_deal(deal_id)
        return recent_first(deal.audit_trail)

    async def pipeline(self) -> PipelineSummary:
        """Unarchived, approved deals grouped by stage."""
        deals = await self._store.list_deals(DealFilter())
        return summarize_pipeline([d for d in deals if not d.is_opportunity], self._stages)

    async def list_opportunities(self, search: str | None = None) -> list[DealRead]:
        deals = await self._store.list_deals(
            DealFilter(deal_type=DealType.OPPORTUNITY.value)
        )
        return opportunities.filter_opportunities(deals, search)

    async def opportunity_stats(self) -> OpportunityStats:
        deals = await self._store.list_deals(
            DealFilter(deal_type=DealType.OPPORTUNITY.value)
        )
        return opportunities.opportunity_stats(deals)

    # ── Details & Stage ─────────────────────────────────────────────────────

    async def update_details(
        self, deal_id: str, changes: DealDetailsUpdate, actor: Actor
    ) -> DealRead:
        """Edit descriptive fields; records which fields changed.

        Archiving and restoring go through archive_deal / restore_deal, so
        the status can neither be set to Archived nor changed while archived.
        """
        written: list[str] = []

        def plan(deal: DealRead) -> DealUpdate | None:
            requested = changes.model_dump(exclude_unset=True)
            cleared = sorted(
                k for k in _REQUIRED_DETAILS if k in requested and requested[k] is None
            )
            if cleared:
                raise DealValidationError(f"Cannot clear required fields: {', '.join(cleared)}")
            if "status" in requested and requested["status"] != deal.status:
                if requested["status"] == DealStatus.ARCHIVED.value:
                    raise DealValidationError("Use archive to archive a deal")
                if deal.is_archived:
                    raise DealValidationError("Restore the deal before changing its status")
            changed = {
                key: value
                for key, value in requested.items()
                if getattr(deal, key) != value
            }
            for key in ("name", "client"):
                if key in changed and not (changed[key] or "").strip():
                    raise DealValidationError(f"Please fill in all required fields: {key}")
            if not changed:
                return None
            written.extend(changed)
            return DealUpdate(
                **changed,
                audit_trail=self._trail(
                    deal,
                    AuditAction.DEAL_UPDATED,
                    actor,
                    f"Updated {', '.join(sorted(changed))}",
                ),
            )

        with self._reporting(
            "update_details", "Deal updated", "Failed to update deal", deal_id=deal_id
        ):
            updated = await self._mutate(deal_id, actor, plan)
            if "sector" in written:
                await self._register_sector(updated.sector, actor)
        return updated

    async def change_stage(self, deal_id: str, stage: str, actor: Actor) -> DealRead:
        """Move a deal to another stage and recompute its progress.

        Raises:
            UnknownStageError: stage is not in the stage list (nothing is written).
        """
        moved_from: list[str] = []

        def plan(deal: DealRead) -> DealUpdate | None:
            if deal.stage == new_stage:
                return None
            moved_from.append(deal.stage)
            return DealUpdate(
                stage=new_stage,
                progress=progress,
                audit_trail=self._trail(
                    deal,
                    AuditAction.STAGE_CHANGED,
                    actor,
                    f"Stage changed from {deal.stage} to {new_stage}",
                ),
            )

        with self._reporting(
            "change_stage", "Stage updated", "Failed to update stage", deal_id=deal_id
        ):
            new_stage = self._stages[stage_index(stage, self._stages)]
            progress = stage_progress(new_stage, self._stages)
            updated = await self._mutate(deal_id, actor, plan)
        if moved_from:
            record_stage_transition(moved_from[0], new_stage)
        return updated

    # ── Pod Team ────────────────────────────────────────────────────────────

    async def add_team_member(
        self, deal_id: str, member: PodTeamMemberCreate, actor: Actor
    ) -> DealRead:
        """Append a pod team member, linking them to the user directory."""

        def plan(deal: DealRead) -> DealUpdate:
            team, added = roster.add_team_member(deal.pod_team, member, directory)
            return DealUpdate(
                pod_team=team,
                audit_trail=self._trail(
                    deal,
                    AuditAction.TEAM_MEMBER_ADDED,
                    actor,
                    f"Added {added.name} as {added.role}",
                ),
            )

        with self._reporting(
            "add_team_member", "Team member added", "Failed to add team member", deal_id=deal_id
        ):
            roster.validate_team_member(member)
            directory = await self._directory.list_users() if self._directory else []
            return await self._mutate(deal_id, actor, plan)

    async def remove_team_member(self, deal_id: str, index: int, actor: Actor) -> DealRead:
        """Remove the pod team member at index.

        Raises:
            RosterEntryNotFoundError: index out of range (nothing is written).
        """

        def plan(deal: DealRead) -> DealUpdate:
            team, removed = roster.remove_team_member(deal.pod_team, index)
            return DealUpdate(
                pod_team=team,
                audit_trail=self._trail(
                    deal,
                    AuditAction.TEAM_MEMBER_REMOVED,
                    actor,
                    f"Removed {removed.name} ({removed.role}) from the pod team",
                ),
            )

        with self._reporting(
            "remove_team_member",
            "Team member removed",
            "Failed to remove team member",
            deal_id=deal_id,
        ):
            return await self._mutate(deal_id, actor, plan)

    # ── Investors ───────────────────────────────────────────────────────────

    async def tag_investor(
        self, deal_id: str, investor: InvestorCreate, actor: Actor
    ) -> DealRead:
        def plan(deal: DealRead) -> DealUpdate:
            investors, tagged = roster.tag_investor(deal.tagged_investors, investor)
            return DealUpdate(
                tagged_investors=investors,
                audit_trail=self._trail(
                    deal,
                    AuditAction.INVESTOR_TAGGED,
                    actor,
                    f"Tagged {tagged.name} ({tagged.firm}) as {tagged.type}",
                ),
            )

        with self._reporting(
            "tag_investor", "Investor tagged", "Failed to tag investor", deal_id=deal_id
        ):
            return await self._mutate(deal_id, actor, plan)

    async def update_investor_status(
        self,
        deal_id: str,
        investor_id: str,
        status: InvestorStatus | str,
        actor: Actor,
    ) -> DealRead:
        def plan(deal: DealRead) -> DealUpdate | None:
            investors, updated, previous = roster.update_investor_status(
                deal.tagged_investors, investor_id, status
            )
            if previous == updated.status:
                return None
            return DealUpdate(
                tagged_investors=investors,
                audit_trail=self._trail(
                    deal,
                    AuditAction.INVESTOR_STATUS_UPDATED,
                    actor,
                    f"{updated.name} status changed from {previous} to {updated.status}",
                ),
            )

        with self._reporting(
            "update_investor_status",
            "Investor status updated",
            "Failed to update investor",
            deal_id=deal_id,
        ):
            return await self._mutate(deal_id, actor, plan)

    async def remove_investor(self, deal_id: str, investor_id: str, actor: Actor) -> DealRead:
        def plan(deal: DealRead) -> DealUpdate:
            investors, removed = roster.remove_investor(deal.tagged_investors, investor_id)
            return DealUpdate(
                tagged_investors=investors,
                audit_trail=self._trail(
                    deal,
                    AuditAction.INVESTOR_REMOVED,
                    actor,
                    f"Removed {removed.name} ({removed.firm})",
                ),
            )

        with self._reporting(
            "remove_investor", "Investor removed", "Failed to remove investor", deal_id=deal_id
        ):
            return await self._mutate(deal_id, actor, plan)

    # ── Attachments ─────────────────────────────────────────────────────────

    async def add_attachment(
        self, deal_id: str, attachment: Attachment, actor: Actor
    ) -> DealRead:
        """Record an already-uploaded file descriptor on the deal."""

        def plan(deal: DealRead) -> DealUpdate:
            return DealUpdate(
                attachments=roster.add_attachment(deal.attachments, attachment),
                audit_trail=self._trail(
                    deal,
                    AuditAction.ATTACHMENT_ADDED,
                    actor,
                    f"Uploaded {attachment.filename}",
                ),
            )

        with self._reporting(
            "add_attachment", "File uploaded", "Failed to upload file", deal_id=deal_id
        ):
            return await self._mutate(deal_id, actor, plan)

    async def upload_attachment(
        self,
        deal_id: str,
        filename: str,
        content: bytes,
        actor: Actor,
        content_type: str | None = None,
    ) -> DealRead:
        """Store an uploaded file and attach it to the deal.

        The stored file is removed again if the deal write fails.
        """
        try:
            if self._attachments is None:
                raise DealValidationError("File uploads are not configured")
            deal = await self._require_deal(deal_id)
            self._authorize_edit(deal, actor)
            attachment = await self._attachments.save(filename, content, content_type)
        except DealError as exc:
            record_deal_mutation("add_attachment", "error")
            self._notifier.error(f"Failed to upload file: {exc}", deal_id=deal_id)
            raise

        try:
            return await self.add_attachment(deal_id, attachment, actor)
        except DealError:
            await self._attachments.delete(attachment)
            raise

    async def remove_attachment(
        self, deal_id: str, attachment_id: str, actor: Actor
    ) -> DealRead:
        """Detach a file from the deal, then delete it from storage."""
        removed: list[Attachment] = []

        def plan(deal: DealRead) -> DealUpdate:
            attachments, attachment = roster.remove_attachment(deal.attachments, attachment_id)
            removed.append(attachment)
            return DealUpdate(
                attachments=attachments,
                audit_trail=self._trail(
                    deal,
                    AuditAction.ATTACHMENT_REMOVED,
                    actor,
                    f"Removed {attachment.filename}",
                ),
            )

        with self._reporting(
            "remove_attachment", "Attachment removed", "Failed to remove attachment", deal_id=deal_id
        ):
            deal = await self._mutate(deal_id, actor, plan)

        if self._attachments is not None and removed:
            await self._attachments.delete(removed[0])
        return deal

    # ── Opportunities ───────────────────────────────────────────────────────

    async def approve_opportunity(
        self, deal_id: str, division: Division | str, actor: Actor
    ) -> DealRead:
        """Promote a pending opportunity into a division's deal type.

        Raises:
            InvalidOpportunityTransitionError: deal is not a pending opportunity.
            DealValidationError: unknown division.
        """

        def plan(deal: DealRead) -> DealUpdate:
            return opportunities.plan_approval(deal, division, actor.display_name)

        with self._reporting(
            "approve_opportunity",
            "Opportunity approved",
            "Failed to approve opportunity",
            deal_id=deal_id,
        ):
            opportunities.division_deal_type(division)
            deal = await self._mutate(
                deal_id, actor, plan, admin_operation="approve opportunities"
            )

        logger.info("opportunity.approved", deal_id=deal_id, deal_type=deal.deal_type)
        return deal

    async def reject_opportunity(self, deal_id: str, actor: Actor) -> None:
        """Reject a pending opportunity. The record is deleted."""
        with self._reporting(
            "reject_opportunity",
            "Opportunity rejected",
            "Failed to reject opportunity",
            deal_id=deal_id,
        ):
            self._require_admin(actor, "reject opportunities")
            async with self._locks.hold(deal_id):
                deal = await self._require_deal(deal_id)
                opportunities.ensure_pending(deal)
                if not await self._store.delete_deal(deal_id):
                    raise DealNotFoundError(deal_id)

        logger.info("opportunity.rejected", deal_id=deal_id)

    # ── Archive / Delete ────────────────────────────────────────────────────

    async def archive_deal(
        self, deal_id: str, actor: Actor, reason: str, notes: str | None = None
    ) -> DealRead:
        """Soft-delete: hide the deal from default listings."""

        def plan(deal: DealRead) -> DealUpdate:
            if deal.is_archived:
                raise InvalidTransitionError(f"Deal {deal_id} is already archived")
            return DealUpdate(
                status=DealStatus.ARCHIVED.value,
                archived_at=datetime.now(timezone.utc),
                archived_by=actor.user_id,
                archived_reason=reason,
                archived_notes=notes,
                audit_trail=self._trail(
                    deal, AuditAction.DEAL_ARCHIVED, actor, f"Archived: {reason}"
                ),
            )

        with self._reporting(
            "archive_deal", "Deal archived", "Failed to archive deal", deal_id=deal_id
        ):
            if not reason or not reason.strip():
                raise DealValidationError("Please fill in all required fields: reason")
            reason = reason.strip()
            return await self._mutate(deal_id, actor, plan, admin_operation="archive deals")

    async def restore_deal(self, deal_id: str, actor: Actor) -> DealRead:
        def plan(deal: DealRead) -> DealUpdate:
            if not deal.is_archived:
                raise InvalidTransitionError(f"Deal {deal_id} is not archived")
            return DealUpdate(
                status=DealStatus.ACTIVE.value,
                archived_at=None,
                archived_by=None,
                archived_reason=None,
                archived_notes=None,
                audit_trail=self._trail(
                    deal, AuditAction.DEAL_RESTORED, actor, "Restored from archive"
                ),
            )

        with self._reporting(
            "restore_deal", "Deal restored", "Failed to restore deal", deal_id=deal_id
        ):
            return await self._mutate(deal_id, actor, plan, admin_operation="restore deals")

    async def delete_deal(self, deal_id: str, actor: Actor) -> None:
        """Hard delete. Irreversible."""
        with self._reporting(
            "delete_deal", "Deal deleted", "Failed to delete deal", deal_id=deal_id
        ):
            self._require_admin(actor, "delete deals")
            async with self._locks.hold(deal_id):
                if not await self._store.delete_deal(deal_id):
                    raise DealNotFoundError(deal_id)

        logger.info("deal.deleted", deal_id=deal_id, actor=actor.display_name)

    # ── Sectors ─────────────────────────────────────────────────────────────

    async def list_sectors(self) -> list[str]:
        """Base sectors followed by custom sectors."""
        custom = await self._sectors.list_custom_sectors() if self._sectors else []
        return [*BASE_SECTORS, *(s.name for s in custom)]

    async def add_custom_sector(self, name: str, actor: Actor) -> list[str]:
        """Register a new sector and return the full sector list.

        Raises:
            DealValidationError: blank name or the sector already exists.
        """
        with self._reporting("add_custom_sector", "Sector added", "Failed to add sector"):
            if self._sectors is None:
                raise DealValidationError("Custom sectors are not available")
            name = (name or "").strip()
            if not name:
                raise DealValidationError("Sector name is required")
            if name.lower() in {s.lower() for s in await self.list_sectors()}:
                raise DealValidationError("This sector already exists")
            await self._sectors.create_custom_sector(name, actor.user_id)
        return await self.list_sectors()

    async def _register_sector(self, sector: str | None, actor: Actor) -> None:
        """Add sector to the custom list if it is new."""
        if self._sectors is None or not sector or not sector.strip():
            return
        known = {s.lower() for s in await self.list_sectors()}
        if sector.strip().lower() in known:
            return
        await self._sectors.create_custom_sector(sector.strip(), actor.user_id)
        logger.info("sector.registered", sector=sector.strip())
