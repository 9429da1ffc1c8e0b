from datetime import datetime

from pydantic import BaseModel, Field


class SelfAssessmentSubmit(BaseModel):
    cycle_id: int | None = Field(default=None, description="Defaults to the active review cycle")
    self_assessment: str = Field(min_length=1)
    self_rating: int = Field(ge=1, le=5)


class SelfAssessmentDraft(BaseModel):
    self_assessment: str | None = None
    self_rating: int | None = Field(default=None, ge=1, le=5)


class OpenReviewPayload(BaseModel):
    cycle_id: int | None = Field(default=None, description="Defaults to the active review cycle")


class ManagerReviewSubmit(BaseModel):
    manager_feedback: str = Field(min_length=1)
    manager_rating: int = Field(ge=1, le=5)
    rating_justification: str | None = None
    compensation_recommendations: str | None = None
    next_period_goals: str | None = None


class AcknowledgePayload(BaseModel):
    employee_response: str | None = None


class PerformanceReviewOut(BaseModel):
    id: int
    cycle_id: int
    user_id: int
    status: str

    self_assessment: str | None
    self_rating: int | None
    submitted_at: datetime | None

    manager_feedback: str | None
    manager_rating: int | None
    rating_justification: str | None
    compensation_recommendations: str | None
    next_period_goals: str | None
    reviewed_by_id: int | None
    review_completed_at: datetime | None

    acknowledged_by_id: int | None
    acknowledged_at: datetime | None
    employee_response: str | None

    created_at: datetime
    updated_at: datetime
    version: int
