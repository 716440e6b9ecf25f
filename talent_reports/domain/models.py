from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Literal

FeedbackType = Literal["overall", "specific"]


class RaterType(StrEnum):
    PEER = "peer"
    DIRECT_REPORT = "direct_report"
    SUPERVISOR = "supervisor"
    SELF = "self"
    OTHER = "other"


@dataclass(slots=True, frozen=True)
class Profile:
    id: str
    name: str | None
    email: str | None


@dataclass(slots=True, frozen=True)
class Assessment:
    id: str
    title: str | None
    is_360: bool


@dataclass(slots=True, frozen=True)
class Assignment:
    id: str
    assessment_id: str
    user_id: str
    target_id: str | None
    completed: bool
    created_at: datetime
    survey_id: str | None = None


@dataclass(slots=True, frozen=True)
class Dimension:
    id: str
    assessment_id: str
    name: str
    code: str | None
    parent_id: str | None = None

    @property
    def is_top_level(self) -> bool:
        return self.parent_id is None


@dataclass(slots=True, frozen=True)
class DimensionScore:
    assignment_id: str
    dimension_id: str
    avg_score: float
    answer_count: int = 0


@dataclass(slots=True, frozen=True)
class Benchmark:
    dimension_id: str
    value: float


@dataclass(slots=True, frozen=True)
class Group:
    id: str
    name: str
    target_id: str | None = None


@dataclass(slots=True, frozen=True)
class GroupMember:
    group_id: str
    profile_id: str
    role: str | None = None


@dataclass(slots=True, frozen=True)
class PeerNorm:
    dimension_id: str
    average_score: float
    participant_count: int  # always >= 1


@dataclass(slots=True, frozen=True)
class AssignedFeedback:
    dimension_id: str | None
    type: FeedbackType
    content: str
    feedback_id: str | None = None


@dataclass(slots=True, frozen=True)
class TextAnswer:
    assignment_id: str
    value: str | None
    dimension_id: str | None


@dataclass(slots=True, frozen=True)
class Answer:
    assignment_id: str
    field_id: str
    dimension_id: str | None
    field_type: str
    value: str | None


@dataclass(slots=True, frozen=True)
class FeedbackLibraryEntry:
    id: str
    assessment_id: str
    dimension_id: str | None
    type: FeedbackType
    content: str
    min_score: float | None = None
    max_score: float | None = None

    def accepts(self, score: float) -> bool:
        if self.min_score is not None and score < self.min_score:
            return False
        if self.max_score is not None and score > self.max_score:
            return False
        return True


@dataclass(slots=True, frozen=True)
class StoredReport:
    """Scores the admin application cached for an assignment's generated report."""

    assignment_id: str
    overall_score: float | None
    dimension_scores: dict[str, float]


@dataclass(slots=True, frozen=True)
class SurveySubject:
    """A person rated in a survey and the assignments that rate them."""

    id: str
    name: str
    email: str
    assignment_ids: tuple[str, ...]
