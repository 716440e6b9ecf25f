"""
SQLAlchemy implementation of :class:`~talent_reports.domain.ports.ReportDataSource`.

Entity repositories return ORM rows; :class:`SqlReportDataSource` converts
them to the frozen domain records the composers consume, so no ORM object
escapes the session that loaded it.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from datetime import datetime
from functools import wraps
from typing import Any, ParamSpec, TypeVar

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..domain.models import (
    Assessment,
    AssignedFeedback,
    Assignment,
    Benchmark,
    Dimension,
    DimensionScore,
    FeedbackLibraryEntry,
    Group,
    GroupMember,
    Profile,
    StoredReport,
    TextAnswer,
)
from ..domain.schemas import ReportTemplate
from .exceptions import handle_database_error
from .logging import get_logger, log_database_operation
from .models import (
    AnswerORM,
    AssessmentORM,
    AssignmentORM,
    BenchmarkORM,
    DimensionORM,
    DimensionScoreORM,
    FeedbackLibraryORM,
    FieldORM,
    GroupMemberORM,
    GroupORM,
    ProfileORM,
    ReportDataORM,
    ReportTemplateORM,
)
from .repositories_base import BaseRepository

logger = get_logger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

FEEDBACK_TYPES = ("overall", "specific")


def db_read(operation: str) -> Callable[[Callable[P, R]], Callable[P, R]]:
    """Time the read and surface SQLAlchemy failures as ``DatabaseError``, logged once."""

    def decorator(func: Callable[P, R]) -> Callable[P, R]:
        @wraps(func)
        @log_database_operation(operation)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return func(*args, **kwargs)
            except SQLAlchemyError as e:
                raise handle_database_error(e, operation) from e

        return wrapper

    return decorator


# ---------- Entity repositories ----------


class AssignmentRepo(BaseRepository[AssignmentORM]):
    model = AssignmentORM


class DimensionRepo(BaseRepository[DimensionORM]):
    model = DimensionORM


class GroupRepo(BaseRepository[GroupORM]):
    model = GroupORM


class FeedbackLibraryRepo(BaseRepository[FeedbackLibraryORM]):
    model = FeedbackLibraryORM


# ---------- ORM -> domain ----------


def _assignment(row: AssignmentORM) -> Assignment:
    return Assignment(
        id=row.id,
        assessment_id=row.assessment_id,
        user_id=row.user_id,
        target_id=row.target_id,
        completed=bool(row.completed),
        created_at=row.created_at,
        survey_id=row.survey_id,
    )


def _dimension(row: DimensionORM) -> Dimension:
    return Dimension(
        id=row.id,
        assessment_id=row.assessment_id,
        name=row.name,
        code=row.code,
        parent_id=row.parent_id,
    )


def _group(row: GroupORM) -> Group:
    return Group(id=row.id, name=row.name, target_id=row.target_id)


def _profile(row: ProfileORM) -> Profile:
    return Profile(id=row.id, name=row.name, email=row.email)


def _stored_report(row: ReportDataORM) -> StoredReport:
    # Only numeric entries are scores; anything else in the JSON is ignored.
    scores = {
        dimension_id: float(value)
        for dimension_id, value in (row.dimension_scores or {}).items()
        if isinstance(value, int | float) and not isinstance(value, bool)
    }
    return StoredReport(
        assignment_id=row.assignment_id,
        overall_score=float(row.overall_score) if row.overall_score is not None else None,
        dimension_scores=scores,
    )


def _report_template(row: ReportTemplateORM) -> ReportTemplate | None:
    try:
        return ReportTemplate.model_validate(
            {
                "id": row.id,
                "name": row.name,
                "components": row.components or {},
                "labels": {k: v for k, v in (row.labels or {}).items() if v is not None},
                "styling": row.styling or {},
            }
        )
    except ValidationError:
        logger.warning("Ignoring malformed report template %s", row.id, exc_info=True)
        return None


def _assigned_feedback(item: dict[str, Any]) -> AssignedFeedback | None:
    kind = item.get("type")
    content = item.get("feedback_content")
    if kind not in FEEDBACK_TYPES or not content:
        return None
    return AssignedFeedback(
        dimension_id=item.get("dimension_id"),
        type=kind,
        content=content,
        feedback_id=item.get("feedback_id"),
    )


class SqlReportDataSource:
    """
    Read-only report data access over one SQLAlchemy session.

    Example:
        >>> with read_session(create_session_factory()) as s:
        ...     report = compose_report(SqlReportDataSource(s), "assignment-id")
    """

    def __init__(self, session: Session):
        self.s = session
        self.assignments = AssignmentRepo(session)
        self.dimensions = DimensionRepo(session)
        self.groups = GroupRepo(session)
        self.feedback_library = FeedbackLibraryRepo(session)

    # -------- Single lookups --------

    @db_read("get_assignment")
    def get_assignment(self, assignment_id: str) -> Assignment | None:
        row = self.assignments.get(assignment_id)
        return _assignment(row) if row else None

    @db_read("get_assessment")
    def get_assessment(self, assessment_id: str) -> Assessment | None:
        row = self.s.get(AssessmentORM, assessment_id)
        if row is None:
            return None
        return Assessment(id=row.id, title=row.title, is_360=bool(row.is_360))

    @db_read("get_profile")
    def get_profile(self, profile_id: str) -> Profile | None:
        row = self.s.get(ProfileORM, profile_id)
        return _profile(row) if row else None

    @db_read("find_profiles")
    def find_profiles(self, profile_ids: Sequence[str]) -> list[Profile]:
        if not profile_ids:
            return []
        stmt = (
            select(ProfileORM)
            .where(ProfileORM.id.in_(list(profile_ids)))
            .order_by(ProfileORM.id)
        )
        return [_profile(row) for row in self.s.scalars(stmt)]

    # -------- Groups --------

    @db_read("find_group_members")
    def find_group_members(self, group_id: str) -> list[GroupMember]:
        stmt = (
            select(GroupMemberORM)
            .where(GroupMemberORM.group_id == group_id)
            .order_by(GroupMemberORM.profile_id)
        )
        return [
            GroupMember(group_id=m.group_id, profile_id=m.profile_id, role=m.role)
            for m in self.s.scalars(stmt)
        ]

    @db_read("find_groups_for_profile")
    def find_groups_for_profile(self, profile_id: str) -> list[Group]:
        # Ordered by group id so "first group wins" is at least stable.
        stmt = (
            select(GroupORM)
            .join(GroupMemberORM, GroupMemberORM.group_id == GroupORM.id)
            .where(GroupMemberORM.profile_id == profile_id)
            .order_by(GroupORM.id)
        )
        return [_group(g) for g in self.s.scalars(stmt)]

    @db_read("find_group_by_target")
    def find_group_by_target(self, target_id: str) -> Group | None:
        row = self.groups.first(GroupORM.target_id == target_id, order_by=[GroupORM.id])
        return _group(row) if row else None

    # -------- Assignments and scores --------

    @db_read("find_assignments")
    def find_assignments(
        self,
        *,
        profile_ids: Sequence[str] | None = None,
        assessment_id: str | None = None,
        target_id: str | None = None,
        created_at: datetime | None = None,
        survey_id: str | None = None,
        completed: bool | None = True,
    ) -> list[Assignment]:
        filters: list[Any] = []
        if profile_ids is not None:
            if not profile_ids:
                return []
            filters.append(AssignmentORM.user_id.in_(list(profile_ids)))
        if assessment_id is not None:
            filters.append(AssignmentORM.assessment_id == assessment_id)
        if target_id is not None:
            filters.append(AssignmentORM.target_id == target_id)
        if created_at is not None:
            filters.append(AssignmentORM.created_at == created_at)
        if survey_id is not None:
            filters.append(AssignmentORM.survey_id == survey_id)
        if completed is not None:
            filters.append(AssignmentORM.completed == completed)

        rows = self.assignments.list(*filters, order_by=[AssignmentORM.id])
        return [_assignment(row) for row in rows]

    @db_read("find_dimension_scores")
    def find_dimension_scores(
        self, assignment_ids: Sequence[str], dimension_ids: Sequence[str]
    ) -> list[DimensionScore]:
        if not assignment_ids or not dimension_ids:
            return []
        stmt = (
            select(DimensionScoreORM)
            .where(DimensionScoreORM.assignment_id.in_(list(assignment_ids)))
            .where(DimensionScoreORM.dimension_id.in_(list(dimension_ids)))
            .order_by(DimensionScoreORM.assignment_id, DimensionScoreORM.dimension_id)
        )
        return [
            DimensionScore(
                assignment_id=row.assignment_id,
                dimension_id=row.dimension_id,
                avg_score=float(row.avg_score),
                answer_count=row.answer_count,
            )
            for row in self.s.scalars(stmt)
        ]

    @db_read("find_benchmarks")
    def find_benchmarks(self, dimension_ids: Sequence[str]) -> list[Benchmark]:
        if not dimension_ids:
            return []
        stmt = (
            select(BenchmarkORM)
            .where(BenchmarkORM.dimension_id.in_(list(dimension_ids)))
            .order_by(BenchmarkORM.dimension_id, BenchmarkORM.id)
        )
        return [
            Benchmark(dimension_id=row.dimension_id, value=float(row.value))
            for row in self.s.scalars(stmt)
        ]

    # -------- Dimensions --------

    @db_read("find_dimensions")
    def find_dimensions(
        self,
        assessment_id: str,
        *,
        top_level_only: bool = False,
        parent_ids: Sequence[str] | None = None,
    ) -> list[Dimension]:
        filters: list[Any] = [DimensionORM.assessment_id == assessment_id]
        if top_level_only:
            filters.append(DimensionORM.parent_id.is_(None))
        if parent_ids is not None:
            if not parent_ids:
                return []
            filters.append(DimensionORM.parent_id.in_(list(parent_ids)))

        rows = self.dimensions.list(*filters, order_by=[DimensionORM.name, DimensionORM.id])
        return [_dimension(row) for row in rows]

    # -------- Feedback and free text --------

    @db_read("find_assigned_feedback")
    def find_assigned_feedback(self, assignment_id: str) -> list[AssignedFeedback]:
        row = self.s.get(ReportDataORM, assignment_id)
        if row is None or not row.feedback_assigned:
            return []
        assigned = [_assigned_feedback(item) for item in row.feedback_assigned]
        return [a for a in assigned if a is not None]

    @db_read("find_text_answers")
    def find_text_answers(
        self, assignment_ids: Sequence[str], field_type: str = "text_input"
    ) -> list[TextAnswer]:
        if not assignment_ids:
            return []
        stmt = (
            select(AnswerORM.assignment_id, AnswerORM.value, FieldORM.dimension_id)
            .join(FieldORM, FieldORM.id == AnswerORM.field_id)
            .where(AnswerORM.assignment_id.in_(list(assignment_ids)))
            .where(FieldORM.type == field_type)
            .order_by(AnswerORM.created_at, AnswerORM.id)
        )
        return [
            TextAnswer(assignment_id=assignment_id, value=value, dimension_id=dimension_id)
            for assignment_id, value, dimension_id in self.s.execute(stmt)
        ]

    @db_read("find_feedback_library")
    def find_feedback_library(self, assessment_id: str) -> list[FeedbackLibraryEntry]:
        rows = self.feedback_library.list(
            FeedbackLibraryORM.assessment_id == assessment_id,
            order_by=[FeedbackLibraryORM.created_at, FeedbackLibraryORM.id],
        )
        return [
            FeedbackLibraryEntry(
                id=row.id,
                assessment_id=row.assessment_id,
                dimension_id=row.dimension_id,
                type=row.type,  # type: ignore[arg-type]
                content=row.feedback,
                min_score=float(row.min_score) if row.min_score is not None else None,
                max_score=float(row.max_score) if row.max_score is not None else None,
            )
            for row in rows
        ]

    # -------- Generated reports --------

    @db_read("find_stored_reports")
    def find_stored_reports(self, assignment_ids: Sequence[str]) -> list[StoredReport]:
        if not assignment_ids:
            return []
        stmt = (
            select(ReportDataORM)
            .where(ReportDataORM.assignment_id.in_(list(assignment_ids)))
            .order_by(ReportDataORM.assignment_id)
        )
        return [_stored_report(row) for row in self.s.scalars(stmt)]

    @db_read("find_report_template")
    def find_report_template(self, assessment_id: str) -> ReportTemplate | None:
        stmt = (
            select(ReportTemplateORM)
            .where(ReportTemplateORM.assessment_id == assessment_id)
            .order_by(ReportTemplateORM.is_default.desc(), ReportTemplateORM.created_at.desc())
            .limit(1)
        )
        row = self.s.scalars(stmt).first()
        return _report_template(row) if row else None
