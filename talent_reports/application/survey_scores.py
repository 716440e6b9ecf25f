"""
Survey-level score overview.

A survey is the set of assignments created together for one rollout. The
overview lists every person rated in it with an overall score and one score
per dimension, preferring the scores of generated reports and falling back to
the raw dimension-score rows when no report exists yet.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Sequence

from ..domain.models import Assignment, DimensionScore, StoredReport, SurveySubject
from ..domain.ports import ReportDataSource
from ..domain.schemas import SubjectScores, SurveyScores
from ..domain.services import mean_or_none
from ..infrastructure.exceptions import NotFoundError
from ..infrastructure.logging import get_logger, log_operation

logger = get_logger(__name__)


def subject_id_of(assignment: Assignment) -> str:
    # Single-rater assignments without a target rate their own user.
    return assignment.target_id or assignment.user_id


def survey_subjects(
    source: ReportDataSource, assignments: Sequence[Assignment]
) -> list[SurveySubject]:
    """
    People rated in the survey, in order of their first assignment.

    Subjects whose profile no longer exists are left out.
    """
    assignment_ids: dict[str, list[str]] = defaultdict(list)
    for assignment in assignments:
        assignment_ids[subject_id_of(assignment)].append(assignment.id)
    if not assignment_ids:
        return []

    profiles = {p.id: p for p in source.find_profiles(list(assignment_ids))}
    subjects = []
    for subject_id, ids in assignment_ids.items():
        profile = profiles.get(subject_id)
        if profile is None:
            logger.warning("Survey subject %s has no profile; skipping", subject_id)
            continue
        subjects.append(
            SurveySubject(
                id=subject_id,
                name=profile.name or "Unknown",
                email=profile.email or "",
                assignment_ids=tuple(ids),
            )
        )
    return subjects


def contributing_assignments(
    subject: SurveySubject, assignments: Sequence[Assignment], is_360: bool
) -> list[str]:
    """Every rater's assignment for 360 surveys; the subject's own one otherwise."""
    if is_360:
        return list(subject.assignment_ids)
    own = next(
        (
            a.id
            for a in assignments
            if a.id in subject.assignment_ids and a.user_id == subject.id
        ),
        None,
    )
    return [own] if own is not None else []


def _average_by_dimension(pairs: Iterable[tuple[str, float]]) -> dict[str, float]:
    by_dimension: dict[str, list[float]] = defaultdict(list)
    for dimension_id, score in pairs:
        by_dimension[dimension_id].append(score)
    return {
        dimension_id: average
        for dimension_id, values in by_dimension.items()
        if (average := mean_or_none(values)) is not None
    }


def score_subject(
    subject: SurveySubject,
    contributing: Sequence[str],
    stored: dict[str, StoredReport],
    rows: dict[str, list[DimensionScore]],
) -> SubjectScores:
    base = {
        "subject_id": subject.id,
        "name": subject.name,
        "email": subject.email,
        "assignment_count": len(subject.assignment_ids),
        "assignment_ids": list(subject.assignment_ids),
    }

    reports = [stored[a] for a in contributing if a in stored]
    if reports:
        return SubjectScores(
            **base,
            overall_score=mean_or_none(
                r.overall_score for r in reports if r.overall_score is not None
            ),
            dimension_scores=_average_by_dimension(
                pair for r in reports for pair in r.dimension_scores.items()
            ),
            has_report=True,
        )

    scored = [row for a in contributing for row in rows.get(a, [])]
    return SubjectScores(
        **base,
        overall_score=mean_or_none(row.avg_score for row in scored),
        dimension_scores=_average_by_dimension((row.dimension_id, row.avg_score) for row in scored),
        has_report=False,
    )


@log_operation("calculate_survey_scores", bind=["survey_id"])
def calculate_survey_scores(source: ReportDataSource, survey_id: str) -> SurveyScores:
    """
    Score overview of every subject in a survey.

    Raises:
        NotFoundError: the survey has no assignments, or its assessment is gone

    Example:
        >>> overview = calculate_survey_scores(SqlReportDataSource(session), "survey-id")
        >>> [s.overall_score for s in overview.subjects]
    """
    assignments = source.find_assignments(survey_id=survey_id, completed=None)
    if not assignments:
        raise NotFoundError(f"Survey {survey_id} not found", entity="survey", entity_id=survey_id)

    assessment_id = assignments[0].assessment_id
    assessment = source.get_assessment(assessment_id)
    if assessment is None:
        raise NotFoundError(
            f"Assessment {assessment_id} not found", entity="assessment", entity_id=assessment_id
        )

    subjects = survey_subjects(source, assignments)
    contributing = {
        s.id: contributing_assignments(s, assignments, assessment.is_360) for s in subjects
    }
    all_ids = [a for ids in contributing.values() for a in ids]

    stored = {r.assignment_id: r for r in source.find_stored_reports(all_ids)}
    missing = [a for a in all_ids if a not in stored]
    rows: dict[str, list[DimensionScore]] = defaultdict(list)
    if missing:
        dimension_ids = [d.id for d in source.find_dimensions(assessment.id)]
        for row in source.find_dimension_scores(missing, dimension_ids):
            rows[row.assignment_id].append(row)

    scores = [score_subject(s, contributing[s.id], stored, rows) for s in subjects]
    logger.info(
        "Scored %d subjects in survey %s (%d with reports)",
        len(scores),
        survey_id,
        sum(1 for s in scores if s.has_report),
    )
    return SurveyScores(
        survey_id=survey_id,
        assessment_id=assessment.id,
        is_360=assessment.is_360,
        subjects=scores,
    )
