"""Learner progress persistence across local storage and a SCORM LMS."""

from .engine import CommitPhase, StateEngine, build_state_engine
from .models import Badge, LoadResult, McqAttempt, SaveResult, SerializedState, TokenState
from .scorm import AsyncScormClient, ScormAdapter
from .storage import DatabaseLocalStorage, JsonFileLocalStorage, MemoryLocalStorage
from .tab_lock import LockChannel, LockHandle, TabLockManager
from .telemetry import TelemetryEvent, TelemetryHub

__all__ = [
    "AsyncScormClient",
    "Badge",
    "CommitPhase",
    "DatabaseLocalStorage",
    "JsonFileLocalStorage",
    "LoadResult",
    "LockChannel",
    "LockHandle",
    "McqAttempt",
    "MemoryLocalStorage",
    "SaveResult",
    "ScormAdapter",
    "SerializedState",
    "StateEngine",
    "TabLockManager",
    "TelemetryEvent",
    "TelemetryHub",
    "TokenState",
    "build_state_engine",
]
