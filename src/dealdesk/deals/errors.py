"""Exception hierarchy for deal workflow failures.

Everything the domain core raises derives from DealError so the HTTP layer
and the notifier can treat a failed user action uniformly.
"""

from __future__ import annotations


class DealError(Exception):
    """Base class for deal workflow failures."""


class DealValidationError(DealError, ValueError):
    """Required input missing or malformed; raised before any store write."""


class UnknownStageError(DealValidationError):
    """Stage name is not a member of the fixed stage list."""

    def __init__(self, stage: str, stages: list[str] | tuple[str, ...]) -> None:
        self.stage = stage
        super().__init__(
            f"Unknown deal stage: {stage!r}. Expected one of: {', '.join(stages)}"
        )


class DealNotFoundError(DealError, LookupError):
    """No deal with the given id."""

    def __init__(self, deal_id: str) -> None:
        self.deal_id = deal_id
        super().__init__(f"Deal not found: {deal_id}")


class RosterEntryNotFoundError(DealError, LookupError):
    """Team member index, investor id or attachment id is not on the deal."""

    def __init__(self, collection: str, key: str | int) -> None:
        self.collection = collection
        self.key = key
        super().__init__(f"No {collection} entry matching {key!r}")


class InvalidTransitionError(DealError):
    """Lifecycle transition not allowed from the deal's current state."""


class InvalidOpportunityTransitionError(InvalidTransitionError):
    """Approve/reject attempted on a deal that is not a pending opportunity."""

    def __init__(self, deal_id: str, deal_type: str) -> None:
        self.deal_id = deal_id
        self.deal_type = deal_type
        super().__init__(
            f"Deal {deal_id} is not a pending opportunity (deal type: {deal_type})"
        )


class DealPermissionError(DealError, PermissionError):
    """Actor is not allowed to perform the operation on this deal."""


class DealPersistenceError(DealError):
    """The backing store failed to read or write."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class TaskNotFoundError(DealError, LookupError):
    """No task with the given id."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")
