"""
Multi-rater (360) report composition.

A 360 report aggregates every completed rating of one target person: the
overall per-dimension mean, a breakdown by the rater's role relative to the
target, benchmark and peer-norm comparisons, and the raters' free-text
answers grouped by dimension.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Sequence
from datetime import datetime

from ..domain.models import Assessment, Assignment, Group, Profile, RaterType, TextAnswer
from ..domain.ports import ReportDataSource
from ..domain.schemas import (
    DimensionReport360,
    ParticipantResponseSummary,
    RaterBreakdown,
    Report360,
)
from ..domain.services import falls_below, map_role_to_rater_type, mean_or_none
from ..infrastructure.config import ReportConfig, get_settings
from ..infrastructure.exceptions import (
    AssignmentNotFoundError,
    GroupNotFoundError,
    InvalidAssessmentError,
    NotFoundError,
    TargetNotFoundError,
)
from ..infrastructure.logging import get_logger, log_operation
from .leader_blocker import load_top_level_dimensions, utc_now
from .peer_norms import calculate_peer_norms

logger = get_logger(__name__)

# Bucket for free-text answers whose field has no dimension.
OVERALL_TEXT_KEY = "overall"


def group_text_answers(answers: Sequence[TextAnswer]) -> dict[str, list[str]]:
    """Free-text answers by dimension id; empty values are dropped."""
    grouped: dict[str, list[str]] = defaultdict(list)
    for answer in answers:
        key = answer.dimension_id or OVERALL_TEXT_KEY
        if answer.value:
            grouped[key].append(answer.value)
    return dict(grouped)


def rater_breakdown(scores: Sequence[tuple[RaterType, float]]) -> RaterBreakdown:
    by_type: dict[RaterType, list[float]] = defaultdict(list)
    for rater_type, score in scores:
        by_type[rater_type].append(score)
    return RaterBreakdown(
        **{rater_type.value: mean_or_none(by_type.get(rater_type, [])) for rater_type in RaterType},
        all_raters=mean_or_none(score for _, score in scores),
    )


class Report360Composer:
    """
    Composes :class:`Report360` values for 360 assignments.

    Any rater's assignment (or the self-rating) resolves to the same target
    and therefore the same report content.
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

    @log_operation("compose_360_report", bind=["assignment_id"], report_kind="360")
    def compose(self, assignment_id: str) -> Report360:
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
        if not assessment.is_360:
            raise InvalidAssessmentError.wrong_composer(assessment.id, is_360=False)

        if assignment.target_id is None:
            raise TargetNotFoundError(assignment_id)
        target = self.source.get_profile(assignment.target_id)
        if target is None:
            raise TargetNotFoundError(assignment_id, assignment.target_id)

        group = self.source.find_group_by_target(assignment.target_id)
        if group is None:
            raise GroupNotFoundError(assignment.target_id)

        return self._compose(assignment, assessment, target, group)

    def _compose(
        self, assignment: Assignment, assessment: Assessment, target: Profile, group: Group
    ) -> Report360:
        dimensions = load_top_level_dimensions(self.source, assessment.id)
        dimension_ids = [d.id for d in dimensions]

        rater_assignments = self.source.find_assignments(
            target_id=target.id, assessment_id=assessment.id, completed=None
        )
        completed = [a for a in rater_assignments if a.completed]
        summary = ParticipantResponseSummary(
            completed=len(completed), total=len(rater_assignments)
        )

        report = Report360(
            assignment_id=assignment.id,
            target_id=target.id,
            target_name=target.name or "Unknown",
            target_email=target.email or "",
            assessment_id=assessment.id,
            assessment_title=assessment.title or "Unknown Assessment",
            group_id=group.id,
            group_name=group.name,
            overall_score=0.0,
            partial=summary.completed < summary.total or not completed,
            participant_response_summary=summary,
            generated_at=self.clock(),
        )
        if not completed:
            logger.info("No completed ratings yet for 360 target %s", target.id)
            return report

        rater_types = {
            member.profile_id: map_role_to_rater_type(member.role)
            for member in self.source.find_group_members(group.id)
        }
        rater_of = {a.id: rater_types.get(a.user_id, RaterType.OTHER) for a in completed}

        assignment_ids = [a.id for a in completed]
        scores_by_dimension: dict[str, list[tuple[RaterType, float]]] = defaultdict(list)
        for row in self.source.find_dimension_scores(assignment_ids, dimension_ids):
            rater_type = rater_of.get(row.assignment_id)
            if rater_type is not None:
                scores_by_dimension[row.dimension_id].append((rater_type, row.avg_score))

        benchmarks = {b.dimension_id: b.value for b in self.source.find_benchmarks(dimension_ids)}
        peer_norms = calculate_peer_norms(self.source, group.id, assessment.id, dimension_ids)
        text_feedback = group_text_answers(
            self.source.find_text_answers(assignment_ids, self.config.text_field_type)
        )

        dimension_reports: list[DimensionReport360] = []
        for dimension in dimensions:
            rated = scores_by_dimension.get(dimension.id)
            if not rated:
                continue

            breakdown = rater_breakdown(rated)
            overall = breakdown.all_raters
            benchmark = benchmarks.get(dimension.id)
            norm = peer_norms.get(dimension.id)
            geonorm = norm.average_score if norm else None

            dimension_reports.append(
                DimensionReport360(
                    dimension_id=dimension.id,
                    dimension_name=dimension.name,
                    dimension_code=dimension.code,
                    overall_score=overall,
                    rater_breakdown=breakdown,
                    industry_benchmark=benchmark,
                    geonorm=geonorm,
                    geonorm_participant_count=norm.participant_count if norm else 0,
                    improvement_needed=falls_below(overall, benchmark)
                    or falls_below(overall, geonorm),
                    text_feedback=list(text_feedback.get(dimension.id, [])),
                )
            )

        overall_score = mean_or_none(d.overall_score for d in dimension_reports)
        logger.info(
            "Composed 360 report for target %s from %d of %d ratings",
            target.id,
            summary.completed,
            summary.total,
        )
        return report.model_copy(
            update={
                "overall_score": overall_score if overall_score is not None else 0.0,
                "dimensions": dimension_reports,
            }
        )
