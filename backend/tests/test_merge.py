"""Reconciliation rules for divergent LMS and local copies."""

from __future__ import annotations

from progress_engine.merge import merge_attempts, merge_states, merge_trackers
from progress_engine.models import Badge, TokenState

from conftest import NOW_MS, make_attempt, make_large_state, make_state

MERGED_AT = NOW_MS + 120_000


def _merge(first, second, **kwargs):
    return merge_states(first, second, now_ms=MERGED_AT, **kwargs)


def test_viewed_options_are_unioned_and_exploratory_count_recomputed() -> None:
    first = make_state(timestamp=NOW_MS, tokens=TokenState(correct=1, exploratory=2, viewed_options=["o1", "o2"]))
    second = make_state(
        timestamp=NOW_MS + 60_000,
        tokens=TokenState(correct=4, exploratory=2, viewed_options=["o2", "o3"]),
    )

    merged = _merge(first, second).state

    assert set(merged.tokens.viewed_options) == {"o1", "o2", "o3"}
    assert len(merged.tokens.viewed_options) == 3
    assert merged.tokens.exploratory == 3
    assert merged.tokens.correct == 4


def test_attempts_are_deduplicated_and_sorted() -> None:
    shared = make_attempt("q-shared", "2024-03-01T10:05:00Z")
    first = make_state(
        timestamp=NOW_MS,
        mcq_attempts=[make_attempt("q-late", "2024-03-01T10:09:00Z"), shared],
    )
    second = make_state(
        timestamp=NOW_MS + 60_000,
        mcq_attempts=[shared, make_attempt("q-early", "2024-03-01T10:01:00Z")],
    )

    merged = _merge(first, second).state

    assert len(merged.mcq_attempts) == 3
    assert [attempt.question_id for attempt in merged.mcq_attempts] == ["q-early", "q-shared", "q-late"]


def test_attempt_ordering_handles_mixed_timestamp_styles() -> None:
    merged = merge_attempts(
        [make_attempt("q2", "2024-03-01T10:00:00.500+00:00")],
        [make_attempt("q1", "2024-03-01T10:00:00Z"), make_attempt("q3", "2024-03-01T12:00:00")],
    )
    assert [attempt.question_id for attempt in merged] == ["q1", "q2", "q3"]


def test_same_question_at_different_times_is_kept() -> None:
    merged = merge_attempts(
        [make_attempt("q1", "2024-03-01T10:00:00Z", score=2)],
        [make_attempt("q1", "2024-03-01T11:00:00Z", score=9)],
    )
    assert [attempt.score for attempt in merged] == [2, 9]


def test_point_totals_take_the_maximum_per_category() -> None:
    newer = make_state(timestamp=NOW_MS + 60_000, total_points=50, case_points=10, simulacrum_points=3)
    older = make_state(timestamp=NOW_MS, total_points=40, case_points=25, ip_insights_points=8)

    merged = _merge(older, newer).state

    assert merged.total_points == 50
    assert merged.case_points == 25
    assert merged.simulacrum_points == 3
    assert merged.ip_insights_points == 8


def test_pointers_and_theme_come_from_the_newer_copy() -> None:
    newer = make_state(timestamp=NOW_MS + 60_000, current_case="case-3", current_question=2, theme="dark")
    older = make_state(timestamp=NOW_MS, current_case="case-2", current_question=9, theme="light")

    for first, second in ((older, newer), (newer, older)):
        merged = _merge(first, second).state
        assert merged.current_case == "case-3"
        assert merged.current_question == 2
        assert merged.theme == "dark"


def test_equal_timestamps_use_the_first_candidate_as_base() -> None:
    first = make_state(current_case="case-a")
    second = make_state(current_case="case-b")
    assert _merge(first, second).state.current_case == "case-a"


def test_badges_union_by_id_with_first_occurrence_winning() -> None:
    earned = Badge(id="b1", name="Compassion", description="new copy", type="case", earned_at="2024-03-01")
    stale = Badge(id="b1", name="Compassion", description="old copy", type="case")
    newer = make_state(timestamp=NOW_MS + 60_000, badges=[earned])
    older = make_state(
        timestamp=NOW_MS,
        badges=[stale, Badge(id="b2", name="Listener", description="", type="premium")],
    )

    merged = _merge(older, newer).state

    assert [badge.id for badge in merged.badges] == ["b1", "b2"]
    assert merged.badges[0].description == "new copy"


def test_progress_trackers_union_per_case() -> None:
    newer = make_state(
        timestamp=NOW_MS + 60_000,
        jit_resources_read={"case-1": ["r1", "r2"]},
        podcasts_completed={"case-1": ["p1"]},
    )
    older = make_state(
        timestamp=NOW_MS,
        jit_resources_read={"case-1": ["r2", "r3"], "case-2": ["r9"]},
        podcasts_in_progress={"case-2": ["p4"]},
    )

    merged = _merge(older, newer).state

    assert merged.jit_resources_read == {"case-1": ["r1", "r2", "r3"], "case-2": ["r9"]}
    assert merged.podcasts_completed == {"case-1": ["p1"]}
    assert merged.podcasts_in_progress == {"case-2": ["p4"]}


def test_tracker_absent_from_both_sides_stays_absent() -> None:
    assert merge_trackers(None, None) is None
    assert merge_trackers({"c": ["a"]}, None) == {"c": ["a"]}


def test_merge_stamps_a_fresh_timestamp_and_drops_reduction_tag() -> None:
    lms = make_state(timestamp=NOW_MS + 60_000, reduction_level="reduced")
    local = make_state(timestamp=NOW_MS)
    merged = _merge(local, lms).state
    assert merged.timestamp == MERGED_AT
    assert merged.reduction_level is None


def test_multi_tab_warning_for_close_timestamps() -> None:
    first = make_state(timestamp=NOW_MS)
    assert _merge(first, make_state(timestamp=NOW_MS + 2000)).multi_tab_warning is True
    assert _merge(first, make_state(timestamp=NOW_MS + 60_000)).multi_tab_warning is False
    assert _merge(first, make_state(timestamp=NOW_MS)).multi_tab_warning is False
    assert _merge(first, make_state(timestamp=NOW_MS + 5000)).multi_tab_warning is False


def test_multi_tab_window_is_configurable() -> None:
    first = make_state(timestamp=NOW_MS)
    second = make_state(timestamp=NOW_MS + 7000)
    assert _merge(first, second, multi_tab_window_ms=10_000).multi_tab_warning is True


def test_merging_a_snapshot_with_itself_is_stable() -> None:
    state = make_large_state()
    merged = _merge(state, state.model_copy(deep=True)).state

    assert merged.model_dump(include={"total_points", "case_points", "simulacrum_points", "ip_insights_points"}) == (
        state.model_dump(include={"total_points", "case_points", "simulacrum_points", "ip_insights_points"})
    )
    assert merged.badges == state.badges
    assert merged.mcq_attempts == state.mcq_attempts
    assert merged.tokens == state.tokens


def test_minimal_copy_exploratory_count_follows_unioned_options() -> None:
    minimal_lms = make_state(
        timestamp=NOW_MS + 60_000,
        reduction_level="minimal",
        tokens=TokenState(correct=5, exploratory=9, viewed_options=[]),
    )
    local = make_state(timestamp=NOW_MS, tokens=TokenState(correct=2, exploratory=2, viewed_options=["o1", "o2"]))

    merged = _merge(local, minimal_lms).state

    assert merged.tokens.viewed_options == ["o1", "o2"]
    assert merged.tokens.exploratory == len(merged.tokens.viewed_options) == 2
    assert merged.tokens.correct == 5


def test_newer_reduced_copy_drops_local_only_reflections() -> None:
    local = make_state(
        timestamp=NOW_MS,
        learner_reflections={"case-1": {"q1": "Talked with the family."}},
        viewed_perspectives=["nurse"],
    )
    reduced_lms = make_state(timestamp=NOW_MS + 60_000, reduction_level="reduced", current_case="case-2")

    merged = _merge(local, reduced_lms).state

    assert merged.current_case == "case-2"
    assert merged.learner_reflections is None
    assert merged.viewed_perspectives is None
