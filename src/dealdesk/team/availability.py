"""Workload classification for the team board.

Display and filtering only: the buckets carry no allocation guarantee.
"""

from __future__ import annotations

from collections.abc import Iterable

from src.dealdesk.team.schemas import Availability, TaskRead, TaskStatus

LIGHT_MAX_TASKS = 2


def classify_availability(active_tasks: int) -> Availability:
    """Available (0), Light (1-2) or Busy (3+)."""
    if active_tasks < 0:
        raise ValueError(f"active task count cannot be negative: {active_tasks}")
    if active_tasks == 0:
        return Availability.AVAILABLE
    if active_tasks <= LIGHT_MAX_TASKS:
        return Availability.LIGHT
    return Availability.BUSY


def active_task_count(tasks: Iterable[TaskRead], user_id: str) -> int:
    """Tasks assigned to user_id that are not completed."""
    return sum(
        1
        for task in tasks
        if task.assigned_to == user_id and task.status != TaskStatus.COMPLETED.value
    )
