from __future__ import annotations

from typing import Any, NoReturn

from fastapi import APIRouter, Depends, HTTPException, status

from talent_reports.application import api as app_api
from talent_reports.application.survey_scores import calculate_survey_scores
from talent_reports.domain.ports import ReportDataSource
from talent_reports.domain.schemas import SurveyScores
from talent_reports.infrastructure.config import ReportConfig, get_settings
from talent_reports.infrastructure.exceptions import (
    DatabaseError,
    InvalidAssessmentError,
    NotFoundError,
    TalentReportsError,
    log_error_details,
)
from talent_reports.infrastructure.logging import get_logger
from talent_reports.web.dependencies import get_data_source, get_report_config
from talent_reports.web.schemas import (
    FeedbackSelectionItem,
    FeedbackSelectionResponse,
    HealthResponse,
)

router = APIRouter(prefix="/api")
logger = get_logger(__name__)


def _raise_http(exc: TalentReportsError, **context: str) -> NoReturn:
    if isinstance(exc, NotFoundError):
        code = status.HTTP_404_NOT_FOUND
    elif isinstance(exc, InvalidAssessmentError):
        code = status.HTTP_400_BAD_REQUEST
    elif isinstance(exc, DatabaseError):
        code = status.HTTP_503_SERVICE_UNAVAILABLE
    else:
        code = status.HTTP_500_INTERNAL_SERVER_ERROR

    log = logger.error if code >= 500 else logger.info
    log("Report request failed", extra=log_error_details(exc, context))
    raise HTTPException(status_code=code, detail=exc.user_message) from exc


@router.get("/health", response_model=HealthResponse)
async def healthcheck() -> HealthResponse:
    settings = get_settings()
    return HealthResponse(environment=settings.app.environment, version=settings.app.version)


@router.get("/reports/{assignment_id}")
def get_report(
    assignment_id: str,
    source: ReportDataSource = Depends(get_data_source),
    config: ReportConfig = Depends(get_report_config),
) -> dict[str, Any]:
    try:
        return app_api.render_report(source, assignment_id, config)
    except TalentReportsError as exc:
        _raise_http(exc, assignment_id=assignment_id)


@router.get(
    "/reports/{assignment_id}/feedback-selection",
    response_model=FeedbackSelectionResponse,
)
def get_feedback_selection(
    assignment_id: str,
    source: ReportDataSource = Depends(get_data_source),
) -> FeedbackSelectionResponse:
    try:
        selection = app_api.select_report_feedback(source, assignment_id)
    except TalentReportsError as exc:
        _raise_http(exc, assignment_id=assignment_id)

    return FeedbackSelectionResponse(
        assignment_id=assignment_id,
        feedback=[
            FeedbackSelectionItem(
                dimension_id=item.dimension_id,
                type=item.type,
                feedback_id=item.feedback_id,
                feedback_content=item.content,
            )
            for item in selection
        ],
    )


@router.get("/surveys/{survey_id}/scores", response_model=SurveyScores)
def get_survey_scores(
    survey_id: str,
    source: ReportDataSource = Depends(get_data_source),
) -> SurveyScores:
    try:
        return calculate_survey_scores(source, survey_id)
    except TalentReportsError as exc:
        _raise_http(exc, survey_id=survey_id)
