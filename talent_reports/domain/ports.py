"""
Read-only data-access contract consumed by the report composers.

Composers take an implementation of :class:`ReportDataSource` as a
constructor argument; the SQLAlchemy implementation lives in
``talent_reports.infrastructure.repositories`` and tests substitute an
in-memory fake.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from .models import (
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
from .schemas import ReportTemplate


class ReportDataSource(Protocol):
    def get_assignment(self, assignment_id: str) -> Assignment | None: ...

    def get_assessment(self, assessment_id: str) -> Assessment | None: ...

    def get_profile(self, profile_id: str) -> Profile | None: ...

    def find_profiles(self, profile_ids: Sequence[str]) -> list[Profile]: ...

    def find_group_members(self, group_id: str) -> list[GroupMember]: ...

    def find_groups_for_profile(self, profile_id: str) -> list[Group]:
        """Groups the profile belongs to, in the store's membership order."""
        ...

    def find_group_by_target(self, target_id: str) -> Group | None: ...

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
        """Assignments matching every given filter; ``completed=None`` disables that filter."""
        ...

    def find_dimension_scores(
        self, assignment_ids: Sequence[str], dimension_ids: Sequence[str]
    ) -> list[DimensionScore]: ...

    def find_benchmarks(self, dimension_ids: Sequence[str]) -> list[Benchmark]: ...

    def find_dimensions(
        self,
        assessment_id: str,
        *,
        top_level_only: bool = False,
        parent_ids: Sequence[str] | None = None,
    ) -> list[Dimension]:
        """
        Dimensions of an assessment ordered by name.

        ``top_level_only`` keeps dimensions without a parent; ``parent_ids``
        keeps the children of the given dimensions.
        """
        ...

    def find_assigned_feedback(self, assignment_id: str) -> list[AssignedFeedback]: ...

    def find_text_answers(
        self, assignment_ids: Sequence[str], field_type: str = "text_input"
    ) -> list[TextAnswer]: ...

    def find_feedback_library(self, assessment_id: str) -> list[FeedbackLibraryEntry]: ...

    def find_stored_reports(self, assignment_ids: Sequence[str]) -> list[StoredReport]: ...

    def find_report_template(self, assessment_id: str) -> ReportTemplate | None:
        """The assessment's default template, else its most recently created one."""
        ...
