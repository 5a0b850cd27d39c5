"""Stage-based progress calculation for deals.

Progress is derived, never entered: a deal's progress percentage is its
stage's position in the fixed ordered stage list, scaled to 0-100 and
rounded half-up. Every write path that changes the stage recomputes
progress through stage_progress(), so the two can never disagree.

Stages outside the list raise UnknownStageError instead of silently
computing from index -1.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from enum import Enum

from src.dealdesk.deals.errors import UnknownStageError
from src.dealdesk.deals.schemas import DEAL_STAGES, DealRead, PipelineSummary


def _stage_name(stage: str | Enum) -> str:
    return stage.value if isinstance(stage, Enum) else stage


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def stage_index(stage: str | Enum, stages: Sequence[str] = DEAL_STAGES) -> int:
    """Position of a stage in the ordered list.

    Raises:
        UnknownStageError: If the stage is not in the list.
    """
    name = _stage_name(stage)
    try:
        return list(stages).index(name)
    except ValueError:
        raise UnknownStageError(name, tuple(stages)) from None


def stage_progress(stage: str | Enum, stages: Sequence[str] = DEAL_STAGES) -> int:
    """Progress percentage for a stage: round(100 * (index + 1) / len(stages)).

    >>> stage_progress("Origination")
    17
    >>> stage_progress("Closed")
    100
    """
    index = stage_index(stage, stages)
    return round_half_up(100 * (index + 1) / len(stages))


def next_stage(stage: str | Enum, stages: Sequence[str] = DEAL_STAGES) -> str | None:
    """The stage after this one, or None for the final stage."""
    index = stage_index(stage, stages)
    if index >= len(stages) - 1:
        return None
    return stages[index + 1]


def summarize_pipeline(
    deals: Sequence[DealRead], stages: Sequence[str] = DEAL_STAGES
) -> PipelineSummary:
    """Group deals by stage in stage order with counts and total value.

    Deals whose stage is not in the list are grouped under their own stage
    name after the known stages, so nothing silently drops out of the view.
    """
    grouped: dict[str, list[DealRead]] = {stage: [] for stage in stages}
    total_value = 0.0
    for deal in deals:
        grouped.setdefault(deal.stage, []).append(deal)
        total_value += deal.value or 0.0

    return PipelineSummary(
        stages=grouped,
        stage_counts={stage: len(items) for stage, items in grouped.items()},
        total_value=total_value,
    )
