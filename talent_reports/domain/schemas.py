"""
Pydantic schemas for the composed report payloads.

Composed reports are immutable value objects: no identity, no persistence.
Numeric comparison fields are ``None`` when no data exists, and renderers must
handle that absence instead of assuming a default.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class ReportSchema(BaseModel):
    """Base schema for report value objects."""

    model_config = ConfigDict(frozen=True)


class SubdimensionReport(ReportSchema):
    """A child dimension nested under a Leader report dimension."""

    dimension_id: str
    dimension_name: str
    dimension_code: str | None = None
    target_score: float
    industry_benchmark: float | None = None
    geonorm: float | None = None
    geonorm_participant_count: int = 0
    group_score: float | None = None
    improvement_needed: bool
    specific_feedback: str | None = None
    specific_feedback_id: str | None = None


class DimensionReport(SubdimensionReport):
    """A top-level (or, for Blocker reports, flat) dimension entry."""

    overall_feedback: str | None = None
    overall_feedback_id: str | None = None
    subdimensions: list[SubdimensionReport] | None = None


class LeaderBlockerReport(ReportSchema):
    """Single-rater report for Leader and Blocker assessments."""

    kind: Literal["leader_blocker"] = "leader_blocker"
    assignment_id: str
    user_id: str
    user_name: str
    user_email: str
    assessment_id: str
    assessment_title: str
    group_id: str | None = None
    group_name: str | None = None
    is_blocker: bool
    overall_score: float
    dimensions: list[DimensionReport] = Field(default_factory=list)
    overall_feedback: str | None = None
    overall_feedback_id: str | None = None
    generated_at: datetime


class RaterBreakdown(ReportSchema):
    """Per rater-type averages; ``None`` when no rater of that type scored."""

    peer: float | None = None
    direct_report: float | None = None
    supervisor: float | None = None
    self: float | None = None
    other: float | None = None
    all_raters: float | None = None


class DimensionReport360(ReportSchema):
    dimension_id: str
    dimension_name: str
    dimension_code: str | None = None
    overall_score: float
    rater_breakdown: RaterBreakdown
    industry_benchmark: float | None = None
    geonorm: float | None = None
    geonorm_participant_count: int = 0
    improvement_needed: bool
    text_feedback: list[str] = Field(default_factory=list)


class ParticipantResponseSummary(ReportSchema):
    completed: int = Field(..., ge=0)
    total: int = Field(..., ge=0)


class Report360(ReportSchema):
    """Multi-rater report about one target person."""

    kind: Literal["360"] = "360"
    assignment_id: str
    target_id: str
    target_name: str
    target_email: str
    assessment_id: str
    assessment_title: str
    group_id: str
    group_name: str
    overall_score: float
    dimensions: list[DimensionReport360] = Field(default_factory=list)
    partial: bool = False
    participant_response_summary: ParticipantResponseSummary | None = None
    generated_at: datetime


ComposedReport = Annotated[LeaderBlockerReport | Report360, Field(discriminator="kind")]


class ReportTemplateComponents(BaseModel):
    """Report sections a template can switch off. Unset means enabled."""

    dimension_breakdown: bool = True
    overall_score: bool = True
    benchmarks: bool = True
    geonorms: bool = True
    feedback: bool = True
    improvement_indicators: bool = True
    rater_breakdown: bool = True


class ReportTemplateLabels(BaseModel):
    overall_score_label: str = "Overall Score"
    dimension_label: str = "Dimension"
    benchmark_label: str = "Industry Benchmark"
    geonorm_label: str = "Group Norm"
    feedback_label: str = "Feedback"


class ReportTemplate(BaseModel):
    """Per-assessment presentation settings stored by the admin application."""

    id: str | None = None
    name: str | None = None
    components: ReportTemplateComponents = Field(default_factory=ReportTemplateComponents)
    labels: ReportTemplateLabels = Field(default_factory=ReportTemplateLabels)
    styling: dict[str, Any] = Field(default_factory=dict)


class SubjectScores(ReportSchema):
    """
    Scores of one person rated in a survey.

    For 360 surveys every rater's assignment about the subject contributes;
    for Leader/Blocker surveys only the subject's own assignment does.
    ``has_report`` is true when the scores come from generated reports rather
    than the raw dimension-score rows.
    """

    subject_id: str
    name: str
    email: str
    assignment_count: int = Field(..., ge=0)
    assignment_ids: list[str] = Field(default_factory=list)
    overall_score: float | None = None
    dimension_scores: dict[str, float] = Field(default_factory=dict)
    has_report: bool = False


class SurveyScores(ReportSchema):
    survey_id: str
    assessment_id: str
    is_360: bool
    subjects: list[SubjectScores] = Field(default_factory=list)
