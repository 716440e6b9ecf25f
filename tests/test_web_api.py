from __future__ import annotations

from fakes import InMemoryReportDataSource
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from talent_reports.domain.models import FeedbackLibraryEntry
from talent_reports.domain.schemas import (
    ReportTemplate,
    ReportTemplateComponents,
    ReportTemplateLabels,
)
from talent_reports.infrastructure.exceptions import DatabaseError
from talent_reports.infrastructure.models import (
    AssessmentORM,
    AssignmentORM,
    Base,
    DimensionORM,
    DimensionScoreORM,
    ProfileORM,
)
from talent_reports.web.dependencies import get_data_source, get_db_session
from talent_reports.web.main import create_application


def build_app_with_source(source) -> TestClient:
    app = create_application()
    app.dependency_overrides[get_data_source] = lambda: source
    return TestClient(app)


def build_app_with_db() -> tuple[TestClient, sessionmaker[Session]]:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)

    app = create_application()

    def override_get_db_session():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db_session] = override_get_db_session
    return TestClient(app), SessionLocal


def seed_leader(source: InMemoryReportDataSource) -> None:
    source.add_profile("ada", name="Ada Lovelace")
    source.add_assessment("lead", "Leadership Assessment")
    source.add_dimension("d1", "lead", "Communication")
    source.add_assignment("a1", "lead", "ada")
    source.add_score("a1", "d1", 2.0)
    source.add_benchmark("d1", 3.0)


def test_health():
    client = build_app_with_source(InMemoryReportDataSource())

    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_get_leader_report():
    source = InMemoryReportDataSource()
    seed_leader(source)
    client = build_app_with_source(source)

    response = client.get("/api/reports/a1")

    assert response.status_code == 200
    body = response.json()
    assert body["kind"] == "leader_blocker"
    assert body["user_name"] == "Ada Lovelace"
    assert body["overall_score"] == 2.0
    assert body["dimensions"][0]["improvement_needed"] is True
    assert body["dimensions"][0]["geonorm"] is None


def test_get_360_report():
    source = InMemoryReportDataSource()
    source.add_profile("tara")
    source.add_profile("pete")
    source.add_assessment("p360", "Peer Review", is_360=True)
    source.add_dimension("d1", "p360", "Trust")
    source.add_group("g", "Raters", target_id="tara")
    source.add_member("g", "pete", "peer")
    source.add_assignment("r1", "p360", "pete", target_id="tara")
    source.add_score("r1", "d1", 4.0)
    client = build_app_with_source(source)

    body = client.get("/api/reports/r1").json()

    assert body["kind"] == "360"
    assert body["dimensions"][0]["rater_breakdown"]["peer"] == 4.0
    assert body["dimensions"][0]["rater_breakdown"]["self"] is None


def test_unknown_assignment_is_404():
    client = build_app_with_source(InMemoryReportDataSource())

    response = client.get("/api/reports/missing")

    assert response.status_code == 404
    assert "assignment" in response.json()["detail"]


def test_assessment_without_dimensions_is_400():
    source = InMemoryReportDataSource()
    source.add_profile("ada")
    source.add_assessment("lead", "Leadership Assessment")
    source.add_assignment("a1", "lead", "ada")
    client = build_app_with_source(source)

    response = client.get("/api/reports/a1")

    assert response.status_code == 400
    assert "no dimensions" in response.json()["detail"]


def test_store_failure_is_503():
    class BrokenSource(InMemoryReportDataSource):
        def get_assignment(self, assignment_id):
            raise DatabaseError("server closed the socket", "get_assignment")

    client = build_app_with_source(BrokenSource())

    response = client.get("/api/reports/a1")

    assert response.status_code == 503
    assert "database" in response.json()["detail"].lower()


def test_feedback_selection_endpoint():
    source = InMemoryReportDataSource()
    seed_leader(source)
    source.library.append(
        FeedbackLibraryEntry("lib1", "lead", "d1", "specific", "Ask more questions", 1.0, 2.5)
    )
    client = build_app_with_source(source)

    response = client.get("/api/reports/a1/feedback-selection")

    assert response.status_code == 200
    body = response.json()
    assert body["assignment_id"] == "a1"
    assert body["feedback"] == [
        {
            "dimension_id": "d1",
            "type": "specific",
            "feedback_id": "lib1",
            "feedback_content": "Ask more questions",
        }
    ]


def test_report_endpoint_reads_through_sql_session():
    client, SessionLocal = build_app_with_db()
    with SessionLocal() as s:
        s.add_all(
            [
                ProfileORM(id="ada", name="Ada"),
                AssessmentORM(id="lead", title="Leadership Assessment"),
            ]
        )
        s.flush()
        s.add_all(
            [
                DimensionORM(id="d1", assessment_id="lead", name="Communication"),
                AssignmentORM(id="a1", assessment_id="lead", user_id="ada", completed=True),
            ]
        )
        s.flush()
        s.add(DimensionScoreORM(assignment_id="a1", dimension_id="d1", avg_score=3.5))
        s.commit()

    response = client.get("/api/reports/a1")

    assert response.status_code == 200
    assert response.json()["overall_score"] == 3.5


def test_report_template_is_applied():
    source = InMemoryReportDataSource()
    seed_leader(source)
    source.templates["lead"] = ReportTemplate(
        components=ReportTemplateComponents(benchmarks=False),
        labels=ReportTemplateLabels(overall_score_label="Total"),
    )
    client = build_app_with_source(source)

    body = client.get("/api/reports/a1").json()

    assert "industry_benchmark" not in body["dimensions"][0]
    assert body["dimensions"][0]["improvement_needed"] is True
    assert body["template_labels"]["overall_score_label"] == "Total"
    assert "find_report_template" in source.calls


def test_report_without_template_is_unfiltered():
    source = InMemoryReportDataSource()
    seed_leader(source)
    client = build_app_with_source(source)

    body = client.get("/api/reports/a1").json()

    assert body["dimensions"][0]["industry_benchmark"] == 3.0
    assert "template_labels" not in body


def test_survey_scores_endpoint():
    source = InMemoryReportDataSource()
    source.add_profile("ada", name="Ada Lovelace")
    source.add_assessment("lead", "Leadership Assessment")
    source.add_dimension("d1", "lead", "Communication")
    source.add_assignment("a1", "lead", "ada", survey_id="s1")
    source.add_score("a1", "d1", 2.5)
    client = build_app_with_source(source)

    response = client.get("/api/surveys/s1/scores")

    assert response.status_code == 200
    body = response.json()
    assert body["survey_id"] == "s1"
    assert body["is_360"] is False
    assert body["subjects"] == [
        {
            "subject_id": "ada",
            "name": "Ada Lovelace",
            "email": "ada@example.com",
            "assignment_count": 1,
            "assignment_ids": ["a1"],
            "overall_score": 2.5,
            "dimension_scores": {"d1": 2.5},
            "has_report": False,
        }
    ]


def test_unknown_survey_is_404():
    client = build_app_with_source(InMemoryReportDataSource())

    response = client.get("/api/surveys/missing/scores")

    assert response.status_code == 404
    assert "survey" in response.json()["detail"]
