"""
Application API layer for report composition.

The single-rater and multi-rater composers are selected here, once, from the
assessment's 360 flag. Everything below this boundary assumes it was handed
the right kind of assignment.
"""

from __future__ import annotations

from typing import Any

from ..domain.models import AssignedFeedback
from ..domain.ports import ReportDataSource
from ..domain.schemas import ComposedReport, ReportTemplate
from ..domain.services import select_feedback
from ..infrastructure.config import ReportConfig
from ..infrastructure.exceptions import AssignmentNotFoundError, NotFoundError
from ..infrastructure.logging import get_logger, log_operation
from .leader_blocker import LeaderBlockerReportComposer
from .report_360 import Report360Composer

logger = get_logger(__name__)


@log_operation("compose_report", bind=["assignment_id"])
def compose_report(
    source: ReportDataSource,
    assignment_id: str,
    config: ReportConfig | None = None,
) -> ComposedReport:
    """
    Compose the report for an assignment, whichever assessment shape it has.

    Args:
        source: Read-only data source
        assignment_id: Assignment to report on
        config: Optional report settings (defaults to environment settings)

    Returns:
        A :class:`LeaderBlockerReport` or a :class:`Report360`

    Raises:
        NotFoundError: Assignment, assessment, target or group is missing
        InvalidAssessmentError: The assessment has no usable dimensions

    Example:
        >>> report = compose_report(SqlReportDataSource(session), "assignment-id")
        >>> report.kind
        '360'
    """
    assignment = source.get_assignment(assignment_id)
    if assignment is None:
        raise AssignmentNotFoundError(assignment_id)
    assessment = source.get_assessment(assignment.assessment_id)
    if assessment is None:
        raise NotFoundError(
            f"Assessment {assignment.assessment_id} not found",
            entity="assessment",
            entity_id=assignment.assessment_id,
        )

    if assessment.is_360:
        return Report360Composer(source, config).compose(assignment_id)
    return LeaderBlockerReportComposer(source, config).compose(assignment_id)


@log_operation("render_report", bind=["assignment_id"])
def render_report(
    source: ReportDataSource,
    assignment_id: str,
    config: ReportConfig | None = None,
) -> dict[str, Any]:
    """
    Composed report as JSON-ready data, filtered by the assessment's template.

    The assessment's default template is used, else its newest one; without
    any template the full report is returned.
    """
    report = compose_report(source, assignment_id, config)
    template = source.find_report_template(report.assessment_id)
    if template is not None:
        logger.debug("Applying report template %s", template.id)
    return apply_template(report.model_dump(mode="json"), template)


@log_operation("select_report_feedback", bind=["assignment_id"])
def select_report_feedback(source: ReportDataSource, assignment_id: str) -> list[AssignedFeedback]:
    """
    Feedback-library entries that apply to a single-rater assignment.

    Only the selection is computed; storing it alongside the report belongs
    to the caller. 360 assessments use raters' free-text answers instead and
    get an empty selection.
    """
    assignment = source.get_assignment(assignment_id)
    if assignment is None:
        raise AssignmentNotFoundError(assignment_id)
    assessment = source.get_assessment(assignment.assessment_id)
    if assessment is None or assessment.is_360:
        return []

    dimension_ids = [d.id for d in source.find_dimensions(assessment.id)]
    scores = source.find_dimension_scores([assignment.id], dimension_ids)
    if not scores:
        return []

    selection = select_feedback(scores, source.find_feedback_library(assessment.id))
    logger.info(
        "Selected %d feedback entries for assignment %s", len(selection), assignment_id
    )
    return selection


def default_template() -> ReportTemplate:
    """Template with every component enabled and the stock labels."""
    return ReportTemplate()


def apply_template(report: dict[str, Any], template: ReportTemplate | None) -> dict[str, Any]:
    """
    Strip the sections a report template disables from a dumped report.

    Args:
        report: ``ComposedReport.model_dump()`` output
        template: Template for the assessment, or None

    Returns:
        A new dict; the input is not modified. Labels and styling are attached
        under ``template_labels`` and ``template_styling``.
    """
    if template is None:
        return report

    components = template.components
    filtered = {**report, "dimensions": []}
    if not components.overall_score:
        filtered.pop("overall_score", None)

    removed: list[str] = []
    if not components.benchmarks:
        removed.append("industry_benchmark")
    if not components.geonorms:
        removed += ["geonorm", "geonorm_participant_count"]
    if not components.feedback:
        removed += ["specific_feedback", "specific_feedback_id", "text_feedback"]
        removed += ["overall_feedback", "overall_feedback_id"]
    if not components.improvement_indicators:
        removed.append("improvement_needed")
    if not components.rater_breakdown:
        removed.append("rater_breakdown")

    def strip(entry: dict[str, Any]) -> dict[str, Any]:
        kept = {k: v for k, v in entry.items() if k not in removed}
        if kept.get("subdimensions"):
            kept["subdimensions"] = [strip(sub) for sub in kept["subdimensions"]]
        return kept

    if components.dimension_breakdown:
        filtered["dimensions"] = [strip(d) for d in report.get("dimensions", [])]
    if not components.feedback:
        filtered.pop("overall_feedback", None)
        filtered.pop("overall_feedback_id", None)

    filtered["template_labels"] = template.labels.model_dump()
    filtered["template_styling"] = dict(template.styling)
    return filtered
