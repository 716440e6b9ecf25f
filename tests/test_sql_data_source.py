import logging
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from talent_reports.application.api import compose_report, render_report, select_report_feedback
from talent_reports.application.survey_scores import calculate_survey_scores
from talent_reports.infrastructure.db import create_session_factory, read_session
from talent_reports.infrastructure.exceptions import DatabaseError
from talent_reports.infrastructure.models import (
    AnswerORM,
    AssessmentORM,
    AssignmentORM,
    Base,
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
from talent_reports.infrastructure.repositories import SqlReportDataSource

BATCH = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def setup_db() -> sessionmaker[Session]:
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, future=True)


def seed_leader(s: Session) -> None:
    s.add_all(
        [
            ProfileORM(id="ada", name="Ada Lovelace", email="ada@example.com"),
            ProfileORM(id="bob", name="Bob", email="bob@example.com"),
            AssessmentORM(id="lead", title="Leadership Assessment", is_360=False),
        ]
    )
    s.flush()
    s.add_all(
        [
            DimensionORM(id="d-comm", assessment_id="lead", name="Communication", code="COM"),
            DimensionORM(id="d-lead", assessment_id="lead", name="Leadership", code="LEA"),
            GroupORM(id="g2", name="South"),
            GroupORM(id="g1", name="North"),
        ]
    )
    s.flush()
    s.add_all(
        [
            DimensionORM(
                id="d-listen", assessment_id="lead", name="Active Listening", parent_id="d-comm"
            ),
            GroupMemberORM(group_id="g2", profile_id="ada"),
            GroupMemberORM(group_id="g1", profile_id="ada"),
            GroupMemberORM(group_id="g1", profile_id="bob"),
            AssignmentORM(id="a1", assessment_id="lead", user_id="ada", completed=True, created_at=BATCH),
            AssignmentORM(id="a2", assessment_id="lead", user_id="bob", completed=True, created_at=BATCH),
            BenchmarkORM(dimension_id="d-comm", value=3.0),
            BenchmarkORM(dimension_id="d-lead", value=3.0),
        ]
    )
    s.flush()
    s.add_all(
        [
            DimensionScoreORM(assignment_id="a1", dimension_id="d-comm", avg_score=2.0, answer_count=3),
            DimensionScoreORM(assignment_id="a1", dimension_id="d-lead", avg_score=4.0, answer_count=3),
            DimensionScoreORM(assignment_id="a1", dimension_id="d-listen", avg_score=1.5, answer_count=2),
            DimensionScoreORM(assignment_id="a2", dimension_id="d-comm", avg_score=3.0, answer_count=3),
            ReportDataORM(
                assignment_id="a1",
                feedback_assigned=[
                    {
                        "dimension_id": "d-comm",
                        "feedback_id": "fb1",
                        "feedback_content": "Ask more questions",
                        "type": "specific",
                    },
                    {"dimension_id": None, "feedback_content": "Keep going", "type": "overall"},
                    {"dimension_id": "d-lead", "feedback_content": "", "type": "specific"},
                    {"dimension_id": "d-lead", "feedback_content": "Unknown", "type": "bonus"},
                ],
            ),
            FeedbackLibraryORM(
                id="lib1",
                assessment_id="lead",
                dimension_id="d-comm",
                type="specific",
                feedback="Slow down",
                min_score=1.0,
                max_score=2.5,
            ),
        ]
    )
    s.commit()


def seed_360(s: Session) -> None:
    s.add_all(
        [
            ProfileORM(id="tara", name="Tara", email="tara@example.com"),
            ProfileORM(id="pete", name="Pete"),
            ProfileORM(id="sam", name="Sam"),
            AssessmentORM(id="p360", title="Peer Review", is_360=True),
        ]
    )
    s.flush()
    s.add_all(
        [
            DimensionORM(id="d-trust", assessment_id="p360", name="Trust"),
            GroupORM(id="g360", name="Tara's raters", target_id="tara"),
        ]
    )
    s.flush()
    s.add_all(
        [
            GroupMemberORM(group_id="g360", profile_id="pete", role="peer"),
            GroupMemberORM(group_id="g360", profile_id="sam", role="Manager"),
            AssignmentORM(id="r1", assessment_id="p360", user_id="pete", target_id="tara", completed=True),
            AssignmentORM(id="r2", assessment_id="p360", user_id="sam", target_id="tara", completed=True),
            AssignmentORM(id="r3", assessment_id="p360", user_id="tara", target_id="tara", completed=False),
            FieldORM(id="f-text", dimension_id="d-trust", type="text_input"),
            FieldORM(id="f-general", dimension_id=None, type="text_input"),
            FieldORM(id="f-scale", dimension_id="d-trust", type="scale"),
        ]
    )
    s.flush()
    s.add_all(
        [
            DimensionScoreORM(assignment_id="r1", dimension_id="d-trust", avg_score=2.0, answer_count=1),
            DimensionScoreORM(assignment_id="r2", dimension_id="d-trust", avg_score=4.0, answer_count=1),
            AnswerORM(assignment_id="r1", field_id="f-text", value="Dependable"),
            AnswerORM(assignment_id="r2", field_id="f-general", value="Great colleague"),
            AnswerORM(assignment_id="r2", field_id="f-scale", value="4"),
        ]
    )
    s.commit()


def test_leader_report_from_sql_store():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        report = compose_report(SqlReportDataSource(s), "a1")

    assert report.kind == "leader_blocker"
    assert report.overall_score == 3.0
    # Membership ordered by group id: g1 before g2
    assert report.group_id == "g1"

    comm, lead = report.dimensions
    assert comm.industry_benchmark == 3.0
    assert comm.group_score == 2.5
    assert comm.geonorm == 2.5
    assert comm.geonorm_participant_count == 2
    assert comm.specific_feedback == "Ask more questions"
    assert comm.subdimensions[0].dimension_name == "Active Listening"
    assert lead.specific_feedback is None
    assert report.overall_feedback == "Keep going"


def test_360_report_from_sql_store():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_360(s)
        report = compose_report(SqlReportDataSource(s), "r1")

    assert report.kind == "360"
    assert report.partial is True
    assert report.participant_response_summary.total == 3
    (trust,) = report.dimensions
    assert trust.rater_breakdown.peer == 2.0
    assert trust.rater_breakdown.supervisor == 4.0
    assert trust.overall_score == 3.0
    assert trust.text_feedback == ["Dependable"]


def test_repository_lookups():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        seed_360(s)
        src = SqlReportDataSource(s)

        assert [d.name for d in src.find_dimensions("lead")] == [
            "Active Listening",
            "Communication",
            "Leadership",
        ]
        assert [d.id for d in src.find_dimensions("lead", top_level_only=True)] == [
            "d-comm",
            "d-lead",
        ]
        assert [d.id for d in src.find_dimensions("lead", parent_ids=["d-comm"])] == ["d-listen"]
        assert src.find_dimensions("lead", parent_ids=[]) == []

        assert [a.id for a in src.find_assignments(target_id="tara", completed=None)] == [
            "r1",
            "r2",
            "r3",
        ]
        assert [a.id for a in src.find_assignments(profile_ids=["ada", "bob"])] == ["a1", "a2"]
        assert src.find_assignments(profile_ids=[]) == []
        assert [a.id for a in src.find_assignments(assessment_id="lead", created_at=BATCH)] == [
            "a1",
            "a2",
        ]

        assert src.find_dimension_scores([], ["d-comm"]) == []
        assert src.find_benchmarks([]) == []
        assert src.find_group_by_target("tara").id == "g360"
        assert src.find_group_by_target("nobody") is None
        assert src.get_assignment("missing") is None

        texts = src.find_text_answers(["r1", "r2"])
        assert {(t.value, t.dimension_id) for t in texts} == {
            ("Dependable", "d-trust"),
            ("Great colleague", None),
        }

        library = src.find_feedback_library("lead")
        assert library[0].content == "Slow down"
        assert library[0].max_score == 2.5


def test_feedback_selection_from_sql_store():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        selected = select_report_feedback(SqlReportDataSource(s), "a1")

    assert [(f.dimension_id, f.feedback_id) for f in selected] == [("d-comm", "lib1")]


def test_store_failures_surface_as_database_error():
    engine = create_engine("sqlite:///:memory:", future=True)
    # No tables created: every read fails
    with Session(engine) as s:
        with pytest.raises(DatabaseError) as exc_info:
            SqlReportDataSource(s).find_dimensions("lead")

    assert exc_info.value.operation == "find_dimensions"
    assert isinstance(exc_info.value.__cause__, OperationalError)


def test_store_failure_is_logged_once():
    records: list[logging.LogRecord] = []
    handler = logging.Handler()
    handler.emit = records.append
    package_logger = logging.getLogger("talent_reports")
    package_logger.addHandler(handler)
    engine = create_engine("sqlite:///:memory:", future=True)
    try:
        with Session(engine) as s, pytest.raises(DatabaseError):
            SqlReportDataSource(s).get_assignment("a1")
    finally:
        package_logger.removeHandler(handler)

    errors = [r for r in records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "get_assignment" in errors[0].getMessage()


def test_read_session_rolls_back_and_closes():
    engine = create_engine("sqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    factory = create_session_factory(engine)

    with read_session(factory) as s:
        s.add(ProfileORM(id="ada", name="Ada"))
        s.flush()
        assert SqlReportDataSource(s).get_profile("ada").name == "Ada"

    with read_session(factory) as s:
        assert SqlReportDataSource(s).get_profile("ada") is None


def test_generated_reports_and_profiles():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        s.get(ReportDataORM, "a1").overall_score = 3.25
        s.get(ReportDataORM, "a1").dimension_scores = {"d-comm": 2, "d-lead": 4.5, "note": "x"}
        s.add(ReportDataORM(assignment_id="a2"))
        s.commit()
        src = SqlReportDataSource(s)

        first, second = src.find_stored_reports(["a2", "a1", "missing"])
        assert [p.id for p in src.find_profiles(["bob", "ada", "nobody"])] == ["ada", "bob"]
        assert src.find_profiles([]) == []
        assert src.find_stored_reports([]) == []

    assert first.overall_score == 3.25
    assert first.dimension_scores == {"d-comm": 2.0, "d-lead": 4.5}
    assert second.overall_score is None
    assert second.dimension_scores == {}


def test_report_template_lookup():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        seed_360(s)
        s.add_all(
            [
                ReportTemplateORM(
                    id="t-default",
                    assessment_id="lead",
                    name="Default",
                    is_default=True,
                    components={"benchmarks": False},
                    labels={"feedback_label": "Advice", "geonorm_label": None},
                    created_at=datetime(2026, 1, 1, tzinfo=UTC),
                ),
                ReportTemplateORM(
                    id="t-newer",
                    assessment_id="lead",
                    name="Newer",
                    components={},
                    created_at=datetime(2026, 3, 1, tzinfo=UTC),
                ),
                ReportTemplateORM(
                    id="t-broken",
                    assessment_id="p360",
                    name="Broken",
                    components={"benchmarks": ["not", "a", "flag"]},
                ),
            ]
        )
        s.commit()
        src = SqlReportDataSource(s)

        template = src.find_report_template("lead")
        broken = src.find_report_template("p360")
        missing = src.find_report_template("nothing")

    assert template.id == "t-default"
    assert template.components.benchmarks is False
    assert template.components.geonorms is True
    assert template.labels.feedback_label == "Advice"
    assert template.labels.geonorm_label == "Group Norm"
    assert broken is None
    assert missing is None


def test_rendered_report_uses_stored_template():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_leader(s)
        s.add(
            ReportTemplateORM(
                assessment_id="lead",
                name="No norms",
                is_default=True,
                components={"geonorms": False},
            )
        )
        s.commit()
        rendered = render_report(SqlReportDataSource(s), "a1")

    comm = rendered["dimensions"][0]
    assert "geonorm" not in comm
    assert "geonorm_participant_count" not in comm
    assert comm["industry_benchmark"] == 3.0
    assert rendered["template_labels"]["geonorm_label"] == "Group Norm"


def test_survey_scores_from_sql_store():
    SessionLocal = setup_db()
    with SessionLocal() as s:
        seed_360(s)
        for assignment_id in ("r1", "r2", "r3"):
            s.get(AssignmentORM, assignment_id).survey_id = "s360"
        s.add(ReportDataORM(assignment_id="r2", overall_score=4.0, dimension_scores={"d-trust": 4.0}))
        s.commit()
        src = SqlReportDataSource(s)

        assert [a.id for a in src.find_assignments(survey_id="s360", completed=None)] == [
            "r1",
            "r2",
            "r3",
        ]
        overview = calculate_survey_scores(src, "s360")

    (tara,) = overview.subjects
    assert overview.is_360 is True
    assert tara.name == "Tara"
    assert tara.assignment_count == 3
    # A stored report exists, so only report scores are aggregated
    assert tara.has_report is True
    assert tara.overall_score == 4.0
    assert tara.dimension_scores == {"d-trust": 4.0}
