"""Shared fakes for the SCORM host, browser frames, and progress documents."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Tuple

import pytest

from progress_engine.config import Settings
from progress_engine.constants import STATE_VERSION
from progress_engine.models import Badge, McqAttempt, SerializedState, TokenState

NOW_MS = 1_700_000_000_000


class _FakeHostApi:
    """Records calls and stores CMI values the way an LMS runtime would."""

    def __init__(self) -> None:
        self.values: Dict[str, str] = {}
        self.calls: List[Tuple[str, Tuple[Any, ...]]] = []
        self.initialize_result = "true"
        self.reject_sets: set[str] = set()
        self.raise_on: set[str] = set()
        self.commits = 0
        self.finished = False

    def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, args))
        if name in self.raise_on:
            raise RuntimeError(f"{name} exploded")

    def _initialize(self, param: str) -> str:
        self._record("initialize", param)
        return self.initialize_result

    def _get(self, key: str) -> str:
        self._record("get", key)
        return self.values.get(key, "")

    def _set(self, key: str, value: str) -> str:
        self._record("set", key, value)
        if key in self.reject_sets:
            return "false"
        self.values[key] = value
        return "true"

    def _commit(self, param: str) -> str:
        self._record("commit", param)
        self.commits += 1
        return "true"

    def _finish(self, param: str) -> str:
        self._record("finish", param)
        self.finished = True
        return "true"

    def _last_error(self) -> str:
        return "351"

    def _error_string(self, code: str) -> str:
        return f"General failure {code}"

    def set_keys(self) -> List[str]:
        return [args[0] for name, args in self.calls if name == "set"]


class FakeScorm12Api(_FakeHostApi):
    def LMSInitialize(self, param: str) -> str:
        return self._initialize(param)

    def LMSGetValue(self, key: str) -> str:
        return self._get(key)

    def LMSSetValue(self, key: str, value: str) -> str:
        return self._set(key, value)

    def LMSCommit(self, param: str) -> str:
        return self._commit(param)

    def LMSFinish(self, param: str) -> str:
        return self._finish(param)

    def LMSGetLastError(self) -> str:
        return self._last_error()

    def LMSGetErrorString(self, code: str) -> str:
        return self._error_string(code)


class FakeScorm2004Api(_FakeHostApi):
    def Initialize(self, param: str) -> str:
        return self._initialize(param)

    def GetValue(self, key: str) -> str:
        return self._get(key)

    def SetValue(self, key: str, value: str) -> str:
        return self._set(key, value)

    def Commit(self, param: str) -> str:
        return self._commit(param)

    def Terminate(self, param: str) -> str:
        return self._finish(param)

    def GetLastError(self) -> str:
        return self._last_error()

    def GetErrorString(self, code: str) -> str:
        return self._error_string(code)


def make_frame(
    *,
    parent: Optional[SimpleNamespace] = None,
    opener: Optional[SimpleNamespace] = None,
    **apis: Any,
) -> SimpleNamespace:
    frame = SimpleNamespace(opener=opener, closed=False, **apis)
    frame.parent = parent if parent is not None else frame
    return frame


def make_attempt(question_id: str, timestamp: str, *, score: int = 7, cluster: str = "B") -> McqAttempt:
    return McqAttempt(
        question_id=question_id,
        selected_options=["A", "B"],
        score=score,
        cluster=cluster,
        timestamp=timestamp,
    )


def make_state(**overrides: Any) -> SerializedState:
    payload: Dict[str, Any] = {
        "state_version": STATE_VERSION,
        "timestamp": NOW_MS,
        "current_level": 1,
        "current_case": "case-1",
        "current_question": 1,
        "tokens": TokenState(),
        "theme": "light",
    }
    payload.update(overrides)
    return SerializedState(**payload)


def make_large_state(**overrides: Any) -> SerializedState:
    attempts = [
        make_attempt(f"question-{index}", f"2024-03-01T10:{index:02d}:00Z") for index in range(50)
    ]
    payload: Dict[str, Any] = {
        "total_points": 120,
        "case_points": 80,
        "tokens": TokenState(
            correct=12,
            exploratory=30,
            viewed_options=[f"option-{index}" for index in range(30)],
        ),
        "badges": [
            Badge(id="first-case", name="First Case", description="Completed a case", type="case"),
        ],
        "mcq_attempts": attempts,
        "viewed_perspectives": [f"perspective-{index}" for index in range(20)],
        "reflected_perspectives": [f"reflected-{index}" for index in range(10)],
        "viewed_feedback_sections": [f"feedback-{index}" for index in range(10)],
        "jit_resources_read": {"case-1": ["jit-1", "jit-2", "jit-3"], "case-2": ["jit-1"]},
        "learner_reflections": {
            "case-1": {
                "q1": "This is a reflection for question 1 that is quite long and personal.",
                "q2": "Another reflection here with some thoughts about the family meeting.",
            }
        },
        "podcasts_completed": {"case-1": ["pod-1"]},
        "podcasts_in_progress": {"case-1": ["pod-2"]},
    }
    payload.update(overrides)
    return make_state(**payload)


@pytest.fixture()
def settings() -> Settings:
    return Settings().model_copy(
        update={
            "debounce_seconds": 0.05,
            "local_storage_mode": "memory",
        }
    )


@pytest.fixture()
def scorm12_api() -> FakeScorm12Api:
    return FakeScorm12Api()


@pytest.fixture()
def scorm2004_api() -> FakeScorm2004Api:
    return FakeScorm2004Api()
