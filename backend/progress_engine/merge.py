"""Deterministic reconciliation of two candidate progress documents."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from .models import POINT_FIELDS, TRACKER_FIELDS, Badge, McqAttempt, SerializedState, TokenState

MULTI_TAB_WINDOW_MS = 5000


@dataclass(frozen=True)
class MergeOutcome:
    state: SerializedState
    multi_tab_warning: bool


def merge_states(
    first: SerializedState,
    second: SerializedState,
    *,
    now_ms: int,
    multi_tab_window_ms: int = MULTI_TAB_WINDOW_MS,
) -> MergeOutcome:
    """Merge two documents: newest wins for pointers, unions and maxima elsewhere.

    The newer document (by ``timestamp``) is the base; on a tie ``first`` is.
    """
    gap = abs(first.timestamp - second.timestamp)
    multi_tab_warning = 0 < gap < multi_tab_window_ms

    if second.timestamp > first.timestamp:
        base, other = second, first
    else:
        base, other = first, second

    update: Dict[str, object] = {
        "timestamp": now_ms,
        "reduction_level": None,
        "tokens": _merge_tokens(base, other),
        "mcq_attempts": merge_attempts(base.mcq_attempts, other.mcq_attempts),
        "badges": merge_badges(base.badges, other.badges),
    }
    for field in POINT_FIELDS:
        update[field] = max(getattr(base, field), getattr(other, field))
    for field in TRACKER_FIELDS:
        update[field] = merge_trackers(getattr(base, field), getattr(other, field))

    # reflections and view sets come from the base only; a reduced base drops the other copy's
    merged = base.model_copy(update=update, deep=True)
    return MergeOutcome(state=merged, multi_tab_warning=multi_tab_warning)


def _merge_tokens(base: SerializedState, other: SerializedState) -> TokenState:
    viewed = _ordered_union(base.tokens.viewed_options, other.tokens.viewed_options)
    return TokenState(
        correct=max(base.tokens.correct, other.tokens.correct),
        exploratory=len(viewed),
        viewed_options=viewed,
    )


def merge_attempts(*logs: Iterable[McqAttempt]) -> List[McqAttempt]:
    seen: set[Tuple[str, str]] = set()
    merged: List[McqAttempt] = []
    for log in logs:
        for attempt in log:
            if attempt.identity in seen:
                continue
            seen.add(attempt.identity)
            merged.append(attempt.model_copy(deep=True))
    merged.sort(key=lambda attempt: attempt.sort_key())
    return merged


def merge_badges(*collections: Iterable[Badge]) -> List[Badge]:
    seen: set[str] = set()
    merged: List[Badge] = []
    for collection in collections:
        for badge in collection:
            if badge.id in seen:
                continue
            seen.add(badge.id)
            merged.append(badge.model_copy())
    return merged


def merge_trackers(
    base: Optional[Dict[str, List[str]]],
    other: Optional[Dict[str, List[str]]],
) -> Optional[Dict[str, List[str]]]:
    if base is None and other is None:
        return None
    base = base or {}
    other = other or {}
    case_ids = _ordered_union(base.keys(), other.keys())
    return {case_id: _ordered_union(base.get(case_id, []), other.get(case_id, [])) for case_id in case_ids}


def _ordered_union(*groups: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(item for group in groups for item in group))


__all__ = [
    "MULTI_TAB_WINDOW_MS",
    "MergeOutcome",
    "merge_attempts",
    "merge_badges",
    "merge_states",
    "merge_trackers",
]
