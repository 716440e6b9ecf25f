"""
Single-rater report composition for Leader and Blocker assessments.

Leader assessments use a two-level dimension tree where a lower score is
worse; Blocker assessments use a flat dimension list where a higher score is
worse. Both attach industry benchmarks, peer-group norms and previously
assigned feedback to the assignment's own dimension scores.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..domain.models import (
    Assessment,
    AssignedFeedback,
    Assignment,
    Dimension,
    Group,
    PeerNorm,
)
from ..domain.ports import ReportDataSource
from ..domain.schemas import DimensionReport, LeaderBlockerReport, SubdimensionReport
from ..domain.services import (
    blocker_needs_improvement,
    is_blocker_assessment,
    leader_needs_improvement,
    mean_or_none,
    pick_first_or_none,
)
from ..infrastructure.config import ReportConfig, get_settings
from ..infrastructure.exceptions import (
    AssignmentNotFoundError,
    InvalidAssessmentError,
    NotFoundError,
)
from ..infrastructure.logging import get_logger, log_operation
from .peer_norms import calculate_peer_norms

logger = get_logger(__name__)


def utc_now() -> datetime:
    return datetime.now(UTC)


@dataclass
class _ScoringContext:
    """Everything read from the store that entry construction needs."""

    is_blocker: bool
    scores: dict[str, float]
    benchmarks: dict[str, float]
    peer_norms: dict[str, PeerNorm]
    group_scores: dict[str, float]
    feedback: list[AssignedFeedback] = field(default_factory=list)


def load_top_level_dimensions(source: ReportDataSource, assessment_id: str) -> list[Dimension]:
    """
    Top-level dimensions of an assessment, ordered by name.

    Raises:
        InvalidAssessmentError: no dimensions at all, or none top-level
    """
    top_level = source.find_dimensions(assessment_id, top_level_only=True)
    if top_level:
        return top_level
    if source.find_dimensions(assessment_id):
        raise InvalidAssessmentError.no_top_level_dimensions(assessment_id)
    raise InvalidAssessmentError.no_dimensions(assessment_id)


def load_dimension_tree(
    source: ReportDataSource, assessment_id: str
) -> tuple[list[Dimension], dict[str, list[Dimension]]]:
    """Top-level dimensions and their children by parent id."""
    top_level = load_top_level_dimensions(source, assessment_id)
    children: dict[str, list[Dimension]] = defaultdict(list)
    for child in source.find_dimensions(assessment_id, parent_ids=[d.id for d in top_level]):
        if child.parent_id is not None:
            children[child.parent_id].append(child)
    return top_level, dict(children)


class LeaderBlockerReportComposer:
    """
    Composes :class:`LeaderBlockerReport` values for non-360 assignments.

    Example:
        >>> composer = LeaderBlockerReportComposer(SqlReportDataSource(session))
        >>> report = composer.compose("assignment-id")
        >>> report.overall_score
    """

    def __init__(
        self,
        source: ReportDataSource,
        config: ReportConfig | None = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.source = source
        self.config = config or get_settings().report
        self.clock = clock

    @log_operation(
        "compose_leader_blocker_report", bind=["assignment_id"], report_kind="leader_blocker"
    )
    def compose(self, assignment_id: str) -> LeaderBlockerReport:
        assignment = self.source.get_assignment(assignment_id)
        if assignment is None:
            raise AssignmentNotFoundError(assignment_id)

        assessment = self.source.get_assessment(assignment.assessment_id)
        if assessment is None:
            raise NotFoundError(
                f"Assessment {assignment.assessment_id} not found",
                entity="assessment",
                entity_id=assignment.assessment_id,
            )
        if assessment.is_360:
            raise InvalidAssessmentError.wrong_composer(assessment.id, is_360=True)

        return self._compose(assignment, assessment)

    def _compose(self, assignment: Assignment, assessment: Assessment) -> LeaderBlockerReport:
        is_blocker = is_blocker_assessment(assessment.title, self.config.blocker_title_marker)
        user = self.source.get_profile(assignment.user_id)
        group = self._resolve_group(assignment.user_id)

        children: dict[str, list[Dimension]] = {}
        if is_blocker:
            # Flat list of every dimension, children included.
            load_top_level_dimensions(self.source, assessment.id)
            entries_for = sorted(self.source.find_dimensions(assessment.id), key=lambda d: d.name)
        else:
            entries_for, children = load_dimension_tree(self.source, assessment.id)

        relevant_ids = [d.id for d in entries_for] + [
            c.id for d in entries_for for c in children.get(d.id, [])
        ]

        context = _ScoringContext(
            is_blocker=is_blocker,
            scores={
                s.dimension_id: s.avg_score
                for s in self.source.find_dimension_scores([assignment.id], relevant_ids)
            },
            benchmarks={b.dimension_id: b.value for b in self.source.find_benchmarks(relevant_ids)},
            peer_norms=(
                calculate_peer_norms(self.source, group.id, assessment.id, relevant_ids)
                if group is not None
                else {}
            ),
            group_scores=self._batch_group_scores(assignment, relevant_ids),
            feedback=self.source.find_assigned_feedback(assignment.id),
        )

        dimension_reports: list[DimensionReport] = []
        for dimension in entries_for:
            entry = self._build_entry(dimension, context)
            if entry is None:
                continue
            if not is_blocker:
                subdimensions = [
                    sub
                    for child in children.get(dimension.id, [])
                    if (sub := self._build_subdimension(child, context)) is not None
                ]
                entry = entry.model_copy(update={"subdimensions": subdimensions})
            dimension_reports.append(entry)

        overall_score = mean_or_none(d.target_score for d in dimension_reports)
        overall_feedback = pick_first_or_none(
            context.feedback, lambda f: f.dimension_id is None and f.type == "overall"
        )

        logger.info(
            "Composed %s report for assignment %s with %d dimensions",
            "blocker" if is_blocker else "leader",
            assignment.id,
            len(dimension_reports),
        )

        return LeaderBlockerReport(
            assignment_id=assignment.id,
            user_id=assignment.user_id,
            user_name=(user.name if user else None) or "Unknown",
            user_email=(user.email if user else None) or "",
            assessment_id=assessment.id,
            assessment_title=assessment.title or "Unknown Assessment",
            group_id=group.id if group else None,
            group_name=group.name if group else None,
            is_blocker=is_blocker,
            overall_score=overall_score if overall_score is not None else 0.0,
            dimensions=dimension_reports,
            overall_feedback=overall_feedback.content if overall_feedback else None,
            overall_feedback_id=overall_feedback.feedback_id if overall_feedback else None,
            generated_at=self.clock(),
        )

    def _resolve_group(self, profile_id: str) -> Group | None:
        # First group found wins. Ordering is whatever the data source returns;
        # a user in several peer groups gets an implementation-defined norm group.
        groups = self.source.find_groups_for_profile(profile_id)
        if len(groups) > 1:
            logger.warning(
                "Profile %s belongs to %d groups; using %s for peer norms",
                profile_id,
                len(groups),
                groups[0].id,
            )
        return groups[0] if groups else None

    def _batch_group_scores(
        self, assignment: Assignment, dimension_ids: Sequence[str]
    ) -> dict[str, float]:
        """Mean score per dimension across the batch the assignment was created in."""
        batch = self.source.find_assignments(
            assessment_id=assignment.assessment_id,
            created_at=assignment.created_at,
            completed=True,
        )
        if not batch:
            return {}

        by_dimension: dict[str, list[float]] = defaultdict(list)
        for row in self.source.find_dimension_scores([a.id for a in batch], dimension_ids):
            by_dimension[row.dimension_id].append(row.avg_score)
        return {
            dimension_id: average
            for dimension_id, values in by_dimension.items()
            if (average := mean_or_none(values)) is not None
        }

    def _comparisons(
        self, dimension: Dimension, context: _ScoringContext
    ) -> dict[str, Any] | None:
        score = context.scores.get(dimension.id)
        if score is None:
            return None
        norm = context.peer_norms.get(dimension.id)
        specific = pick_first_or_none(
            context.feedback, lambda f: f.dimension_id == dimension.id and f.type == "specific"
        )
        return {
            "dimension_id": dimension.id,
            "dimension_name": dimension.name,
            "dimension_code": dimension.code,
            "target_score": score,
            "industry_benchmark": context.benchmarks.get(dimension.id),
            "geonorm": norm.average_score if norm else None,
            "geonorm_participant_count": norm.participant_count if norm else 0,
            "group_score": context.group_scores.get(dimension.id),
            "specific_feedback": specific.content if specific else None,
            "specific_feedback_id": specific.feedback_id if specific else None,
        }

    def _build_entry(
        self, dimension: Dimension, context: _ScoringContext
    ) -> DimensionReport | None:
        values = self._comparisons(dimension, context)
        if values is None:
            return None

        if context.is_blocker:
            improvement = blocker_needs_improvement(
                values["target_score"], values["industry_benchmark"], values["geonorm"]
            )
        else:
            improvement = leader_needs_improvement(
                values["target_score"],
                values["industry_benchmark"],
                values["geonorm"],
                group_score=values["group_score"],
                tolerance=self.config.group_score_tolerance,
            )

        overall = pick_first_or_none(
            context.feedback, lambda f: f.dimension_id == dimension.id and f.type == "overall"
        )
        return DimensionReport(
            **values,
            improvement_needed=improvement,
            overall_feedback=overall.content if overall else None,
            overall_feedback_id=overall.feedback_id if overall else None,
        )

    def _build_subdimension(
        self, dimension: Dimension, context: _ScoringContext
    ) -> SubdimensionReport | None:
        values = self._comparisons(dimension, context)
        if values is None:
            return None
        # Subdimensions are never compared against the batch group score.
        improvement = leader_needs_improvement(
            values["target_score"], values["industry_benchmark"], values["geonorm"]
        )
        return SubdimensionReport(**values, improvement_needed=improvement)
