"""Progressively lossy projections used to fit the LMS byte budget.

Each level is a pure ``SerializedState -> SerializedState`` function. The
commit path walks :data:`REDUCTION_CHAIN` in order and persists the first
projection whose encoded size fits the adapter's limit, so new levels can be
appended without touching the commit algorithm.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .codec import encode
from .constants import REDUCTION_FULL, REDUCTION_MINIMAL, REDUCTION_REDUCED
from .models import ReductionLevelName, SerializedState, TokenState
from .serialization import serialize

logger = logging.getLogger(__name__)

REDUCED_ATTEMPT_LIMIT = 10


class SuspendDataOverflowError(RuntimeError):
    """Every reduction level exceeded the byte budget."""

    def __init__(self, level: ReductionLevelName, size: int, limit: int) -> None:
        super().__init__(f"Data exceeds LMS limit even after reduction: {size} > {limit} bytes")
        self.level = level
        self.size = size
        self.limit = limit


@dataclass(frozen=True)
class ReductionLevel:
    name: ReductionLevelName
    project: Callable[[SerializedState], SerializedState]


@dataclass(frozen=True)
class FitResult:
    level: ReductionLevelName
    state: SerializedState
    encoded: str

    @property
    def size(self) -> int:
        return len(self.encoded)


def reduce_full(state: SerializedState) -> SerializedState:
    return state.model_copy(update={"reduction_level": REDUCTION_FULL}, deep=True)


def reduce_partial(state: SerializedState, attempt_limit: int = REDUCED_ATTEMPT_LIMIT) -> SerializedState:
    """Drop reflections and view-tracking sets, keep the latest attempts."""
    attempts = state.mcq_attempts[-attempt_limit:] if attempt_limit > 0 else []
    return SerializedState(
        state_version=state.state_version,
        timestamp=state.timestamp,
        reduction_level=REDUCTION_REDUCED,
        current_level=state.current_level,
        current_case=state.current_case,
        current_question=state.current_question,
        total_points=state.total_points,
        case_points=state.case_points,
        simulacrum_points=state.simulacrum_points,
        ip_insights_points=state.ip_insights_points,
        tokens=state.tokens.model_copy(deep=True),
        badges=[badge.model_copy() for badge in state.badges],
        mcq_attempts=[attempt.model_copy(deep=True) for attempt in attempts],
        jit_resources_read=_copy_tracker(state.jit_resources_read),
        podcasts_completed=_copy_tracker(state.podcasts_completed),
        theme=state.theme,
    )


def reduce_minimal(state: SerializedState) -> SerializedState:
    """Scores, badges and theme only; token counts survive without the option ids."""
    return SerializedState(
        state_version=state.state_version,
        timestamp=state.timestamp,
        reduction_level=REDUCTION_MINIMAL,
        current_level=state.current_level,
        current_case=state.current_case,
        current_question=state.current_question,
        total_points=state.total_points,
        case_points=state.case_points,
        simulacrum_points=state.simulacrum_points,
        ip_insights_points=state.ip_insights_points,
        tokens=TokenState(
            correct=state.tokens.correct,
            exploratory=state.tokens.exploratory,
            viewed_options=[],
        ),
        badges=[badge.model_copy() for badge in state.badges],
        mcq_attempts=[],
        theme=state.theme,
    )


def build_reduction_chain(attempt_limit: int = REDUCED_ATTEMPT_LIMIT) -> tuple[ReductionLevel, ...]:
    return (
        ReductionLevel(REDUCTION_FULL, reduce_full),
        ReductionLevel(REDUCTION_REDUCED, lambda state: reduce_partial(state, attempt_limit)),
        ReductionLevel(REDUCTION_MINIMAL, reduce_minimal),
    )


REDUCTION_CHAIN = build_reduction_chain()


def encode_state(state: SerializedState) -> str:
    return encode(serialize(state))


def first_that_fits(
    state: SerializedState,
    limit: int,
    levels: Sequence[ReductionLevel] = REDUCTION_CHAIN,
) -> FitResult:
    """Return the first projection whose encoded form is at most ``limit`` long."""
    if not levels:
        raise ValueError("At least one reduction level is required.")
    last: FitResult | None = None
    for index, level in enumerate(levels):
        projected = level.project(state)
        candidate = FitResult(level=level.name, state=projected, encoded=encode_state(projected))
        if candidate.size <= limit:
            return candidate
        last = candidate
        if index + 1 < len(levels):
            logger.warning(
                "Suspend data overflow at level %s (%d > %d); applying next reduction",
                level.name,
                candidate.size,
                limit,
            )
    assert last is not None
    raise SuspendDataOverflowError(last.level, last.size, limit)


def _copy_tracker(tracker: dict[str, list[str]] | None) -> dict[str, list[str]] | None:
    if tracker is None:
        return None
    return {case_id: list(items) for case_id, items in tracker.items()}


__all__ = [
    "FitResult",
    "REDUCED_ATTEMPT_LIMIT",
    "REDUCTION_CHAIN",
    "ReductionLevel",
    "SuspendDataOverflowError",
    "build_reduction_chain",
    "encode_state",
    "first_that_fits",
    "reduce_full",
    "reduce_minimal",
    "reduce_partial",
]
