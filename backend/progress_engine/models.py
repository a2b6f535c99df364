"""Persisted progress document and engine result models."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .constants import STATE_VERSION

ReductionLevelName = Literal["full", "reduced", "minimal"]
SaveSource = Literal["lms", "local_storage"]
LoadSource = Literal["lms", "local_storage", "both", "none"]
CompletionStatus = Literal["completed", "incomplete", "passed", "failed"]


class _WireModel(BaseModel):
    """Base for models persisted with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class TokenState(_WireModel):
    correct: int = Field(default=0, ge=0)
    exploratory: int = Field(default=0, ge=0)
    viewed_options: List[str] = Field(default_factory=list, alias="viewedOptions")


class Badge(_WireModel):
    id: str
    name: str
    description: str = ""
    type: Literal["case", "premium", "simulacrum"] = "case"
    earned_at: Optional[str] = Field(default=None, alias="earnedAt")


class McqAttempt(_WireModel):
    question_id: str = Field(alias="questionId")
    selected_options: List[str] = Field(default_factory=list, alias="selectedOptions")
    score: int = 0
    cluster: Literal["A", "B", "C"]
    timestamp: str

    @field_validator("timestamp")
    @classmethod
    def _check_timestamp(cls, value: str) -> str:
        parse_attempt_timestamp(value)
        return value

    @property
    def identity(self) -> tuple[str, str]:
        return (self.question_id, self.timestamp)

    def sort_key(self) -> datetime:
        return parse_attempt_timestamp(self.timestamp)


class SerializedState(_WireModel):
    """The single persisted progress document.

    Local storage always holds the full document; the LMS copy may be a reduced
    projection, recorded in ``reduction_level``.
    """

    state_version: int = Field(default=STATE_VERSION, alias="_stateVersion")
    timestamp: int = Field(default=0, ge=0, alias="_timestamp")
    reduction_level: Optional[ReductionLevelName] = Field(default=None, alias="_reductionLevel")

    current_level: int = Field(default=1, alias="currentLevel")
    current_case: str = Field(default="", alias="currentCase")
    current_question: int = Field(default=0, alias="currentQuestion")

    total_points: int = Field(default=0, ge=0, alias="totalPoints")
    case_points: int = Field(default=0, ge=0, alias="casePoints")
    simulacrum_points: int = Field(default=0, ge=0, alias="simulacrumPoints")
    ip_insights_points: int = Field(default=0, ge=0, alias="ipInsightsPoints")

    tokens: TokenState = Field(default_factory=TokenState)
    badges: List[Badge] = Field(default_factory=list)
    mcq_attempts: List[McqAttempt] = Field(default_factory=list, alias="mcqAttempts")

    viewed_perspectives: Optional[List[str]] = Field(default=None, alias="viewedPerspectives")
    reflected_perspectives: Optional[List[str]] = Field(default=None, alias="reflectedPerspectives")
    viewed_feedback_sections: Optional[List[str]] = Field(default=None, alias="viewedFeedbackSections")
    jit_resources_read: Optional[Dict[str, List[str]]] = Field(default=None, alias="jitResourcesRead")
    learner_reflections: Optional[Dict[str, Dict[str, str]]] = Field(
        default=None, alias="learnerReflections"
    )
    podcasts_completed: Optional[Dict[str, List[str]]] = Field(default=None, alias="podcastsCompleted")
    podcasts_in_progress: Optional[Dict[str, List[str]]] = Field(default=None, alias="podcastsInProgress")

    theme: Literal["light", "dark"] = "light"

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


POINT_FIELDS = ("total_points", "case_points", "simulacrum_points", "ip_insights_points")
TRACKER_FIELDS = ("jit_resources_read", "podcasts_completed", "podcasts_in_progress")


class SaveResult(BaseModel):
    success: bool
    level: ReductionLevelName = "full"
    size: int = 0
    source: SaveSource
    error: Optional[str] = None


class LoadResult(BaseModel):
    state: Optional[SerializedState] = None
    source: LoadSource = "none"
    multi_tab_warning: bool = False


def parse_attempt_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


__all__ = [
    "Badge",
    "CompletionStatus",
    "LoadResult",
    "LoadSource",
    "McqAttempt",
    "POINT_FIELDS",
    "ReductionLevelName",
    "SaveResult",
    "SaveSource",
    "SerializedState",
    "TRACKER_FIELDS",
    "TokenState",
    "parse_attempt_timestamp",
]
