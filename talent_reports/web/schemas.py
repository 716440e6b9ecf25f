from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class FeedbackSelectionItem(BaseModel):
    dimension_id: str | None = None
    type: Literal["overall", "specific"]
    feedback_id: str | None = None
    feedback_content: str


class FeedbackSelectionResponse(BaseModel):
    assignment_id: str
    feedback: list[FeedbackSelectionItem]


class HealthResponse(BaseModel):
    status: Literal["ok"] = "ok"
    environment: str
    version: str
