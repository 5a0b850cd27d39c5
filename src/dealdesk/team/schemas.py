"""Pydantic schemas for the user directory, tasks and the team board."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from src.dealdesk.deals.schemas import Attachment


class Availability(str, Enum):
    """Workload bucket derived from a user's open task count."""

    AVAILABLE = "Available"
    LIGHT = "Light"
    BUSY = "Busy"


class TaskStatus(str, Enum):
    PENDING = "Pending"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"


class TaskPriority(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    URGENT = "Urgent"


# ── Users ───────────────────────────────────────────────────────────────────


class UserCreate(BaseModel):
    name: str
    email: str
    role: str = "Employee"
    job_title: str | None = None
    access_level: str = "standard"
    status: str = "active"


class UserRead(BaseModel):
    """Directory entry. Only the fields the deal desk needs."""

    id: str
    name: str
    email: str | None = None
    role: str = "Employee"
    job_title: str | None = None
    access_level: str = "standard"
    status: str = "active"
    created_at: datetime | None = None


# ── Tasks ───────────────────────────────────────────────────────────────────


class TaskCreate(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    title: str
    description: str | None = None
    deal_id: str | None = None
    deal_stage: str | None = None
    assigned_to: str | None = None
    assigned_by: str | None = None
    priority: TaskPriority = TaskPriority.MEDIUM
    type: str = "General"
    due_date: str | None = None
    status: TaskStatus = TaskStatus.PENDING
    attachments: list[Attachment] = Field(default_factory=list)


class TaskRead(BaseModel):
    id: str
    title: str
    description: str | None = None
    deal_id: str | None = None
    deal_stage: str | None = None
    assigned_to: str | None = None
    assigned_by: str | None = None
    priority: str = TaskPriority.MEDIUM.value
    type: str = "General"
    due_date: str | None = None
    status: str = TaskStatus.PENDING.value
    attachments: list[Attachment] = Field(default_factory=list)
    created_at: datetime | None = None


class TaskAssignment(BaseModel):
    """Team board input: assign a new task on a deal to a user."""

    model_config = ConfigDict(use_enum_values=True)

    title: str = ""
    description: str | None = None
    deal_id: str = ""
    assigned_to: str = ""
    priority: TaskPriority = TaskPriority.MEDIUM
    type: str = "Analysis"
    due_date: str | None = None


# ── Board ───────────────────────────────────────────────────────────────────


class TeamBoardEntry(BaseModel):
    user: UserRead
    active_tasks: int = 0
    availability: Availability = Availability.AVAILABLE


class TeamBoardView(BaseModel):
    entries: list[TeamBoardEntry] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)
