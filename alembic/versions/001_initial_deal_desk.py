"""Initial deal desk schema.

Revision ID: 001_initial_deal_desk
Revises:
Create Date: 2026-10-17

Creates four tables:
- deals: deal records; pod team, tagged investors, attachments and the
  audit trail are JSON documents replaced whole on every write
- custom_sectors: user-defined sectors (unique name)
- users: directory of firm members (pod team linking, task assignment)
- tasks: work items assigned to users, optionally tied to a deal stage

Ids are application-generated UUID strings. No foreign key constraints
(referential integrity is application-level via the repositories).
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_initial_deal_desk"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── deals table ─────────────────────────────────────────────────────

    op.create_table(
        "deals",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(300), nullable=False),
        sa.Column("deal_type", sa.String(50), nullable=False),
        sa.Column("stage", sa.String(50), nullable=False),
        sa.Column("value", sa.Float(), nullable=False, server_default="0"),
        sa.Column("client", sa.String(300), nullable=False),
        sa.Column("client_contact_name", sa.String(200), nullable=True),
        sa.Column("client_contact_email", sa.String(255), nullable=True),
        sa.Column("client_contact_phone", sa.String(50), nullable=True),
        sa.Column("client_contact_role", sa.String(200), nullable=True),
        sa.Column("sector", sa.String(100), nullable=False, server_default=""),
        sa.Column("lead", sa.String(200), nullable=False, server_default=""),
        sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(50), nullable=False, server_default="Active"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("pod_team", sa.JSON(), nullable=False),
        sa.Column("tagged_investors", sa.JSON(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("audit_trail", sa.JSON(), nullable=False),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_by", sa.String(36), nullable=True),
        sa.Column("archived_reason", sa.String(200), nullable=True),
        sa.Column("archived_notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("idx_deals_deal_type", "deals", ["deal_type"])
    op.create_index("idx_deals_archived_at", "deals", ["archived_at"])

    # ── custom_sectors table ────────────────────────────────────────────

    op.create_table(
        "custom_sectors",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False, unique=True),
        sa.Column("created_by", sa.String(36), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── users table ─────────────────────────────────────────────────────

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", sa.String(50), nullable=False, server_default="Employee"),
        sa.Column("job_title", sa.String(200), nullable=True),
        sa.Column("access_level", sa.String(20), nullable=False, server_default="standard"),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )

    # ── tasks table ─────────────────────────────────────────────────────

    op.create_table(
        "tasks",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("title", sa.String(300), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("deal_id", sa.String(36), nullable=True),
        sa.Column("deal_stage", sa.String(50), nullable=True),
        sa.Column("assigned_to", sa.String(36), nullable=True),
        sa.Column("assigned_by", sa.String(36), nullable=True),
        sa.Column("priority", sa.String(20), nullable=False, server_default="Medium"),
        sa.Column("type", sa.String(50), nullable=False, server_default="General"),
        sa.Column("due_date", sa.String(20), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="Pending"),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_tasks_deal_id", "tasks", ["deal_id"])
    op.create_index("ix_tasks_assigned_to", "tasks", ["assigned_to"])


def downgrade() -> None:
    op.drop_index("ix_tasks_assigned_to", table_name="tasks")
    op.drop_index("ix_tasks_deal_id", table_name="tasks")
    op.drop_table("tasks")
    op.drop_table("users")
    op.drop_table("custom_sectors")
    op.drop_index("idx_deals_archived_at", table_name="deals")
    op.drop_index("idx_deals_deal_type", table_name="deals")
    op.drop_table("deals")
