"""
ORM mappings for the admin application's tables the report engine reads.

The tables are owned and migrated by the admin application; these mappings
cover only the columns report composition needs.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


def _now() -> datetime:
    return datetime.now(UTC)


class Base(DeclarativeBase):
    pass


class ProfileORM(Base):
    __tablename__ = "profiles"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    client_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)


class AssessmentORM(Base):
    __tablename__ = "assessments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_360: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    dimensions: Mapped[list[DimensionORM]] = relationship(back_populates="assessment")


class AssignmentORM(Base):
    __tablename__ = "assignments"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    target_id: Mapped[str | None] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )
    # Assignments created together for one client rollout share a survey id.
    survey_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )


class DimensionORM(Base):
    __tablename__ = "dimensions"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    parent_id: Mapped[str | None] = mapped_column(
        ForeignKey("dimensions.id", ondelete="CASCADE"), nullable=True, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), nullable=True)

    assessment: Mapped[AssessmentORM] = relationship(back_populates="dimensions")


class DimensionScoreORM(Base):
    __tablename__ = "assignment_dimension_scores"
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True
    )
    dimension_id: Mapped[str] = mapped_column(
        ForeignKey("dimensions.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    avg_score: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    answer_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )


class BenchmarkORM(Base):
    __tablename__ = "benchmarks"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    dimension_id: Mapped[str] = mapped_column(
        ForeignKey("dimensions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    industry_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    value: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)

    __table_args__ = (
        UniqueConstraint("dimension_id", "industry_id", name="uq_benchmark_dimension_industry"),
    )


class GroupORM(Base):
    __tablename__ = "groups"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    client_id: Mapped[str | None] = mapped_column(String(36), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    target_id: Mapped[str | None] = mapped_column(
        ForeignKey("profiles.id", ondelete="SET NULL"), nullable=True, index=True
    )

    members: Mapped[list[GroupMemberORM]] = relationship(back_populates="group")


class GroupMemberORM(Base):
    __tablename__ = "group_members"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    group_id: Mapped[str] = mapped_column(
        ForeignKey("groups.id", ondelete="CASCADE"), nullable=False, index=True
    )
    profile_id: Mapped[str] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role: Mapped[str | None] = mapped_column(String(64), nullable=True)

    __table_args__ = (UniqueConstraint("group_id", "profile_id", name="uq_group_member"),)

    group: Mapped[GroupORM] = relationship(back_populates="members")


class FieldORM(Base):
    __tablename__ = "fields"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    dimension_id: Mapped[str | None] = mapped_column(
        ForeignKey("dimensions.id", ondelete="SET NULL"), nullable=True, index=True
    )
    type: Mapped[str] = mapped_column(String(64), nullable=False)


class AnswerORM(Base):
    __tablename__ = "answers"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    field_id: Mapped[str] = mapped_column(
        ForeignKey("fields.id", ondelete="CASCADE"), nullable=False, index=True
    )
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )

    field: Mapped[FieldORM] = relationship()


class FeedbackLibraryORM(Base):
    __tablename__ = "feedback_library"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    dimension_id: Mapped[str | None] = mapped_column(
        ForeignKey("dimensions.id", ondelete="SET NULL"), nullable=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    feedback: Mapped[str] = mapped_column(Text, nullable=False)
    min_score: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    max_score: Mapped[float | None] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )

    __table_args__ = (CheckConstraint("type IN ('overall', 'specific')", name="ck_feedback_type"),)


class ReportDataORM(Base):
    __tablename__ = "report_data"
    assignment_id: Mapped[str] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), primary_key=True
    )
    overall_score: Mapped[float | None] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=True
    )
    # dimension_id -> score for the generated report.
    dimension_scores: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    # List of {dimension_id, feedback_id, feedback_content, type} written by the admin app.
    feedback_assigned: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)


class ReportTemplateORM(Base):
    __tablename__ = "report_templates"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    assessment_id: Mapped[str] = mapped_column(
        ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    components: Mapped[dict[str, Any]] = mapped_column(JSON, default=dict, nullable=False)
    labels: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    styling: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_now, nullable=False
    )
