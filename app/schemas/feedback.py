from datetime import datetime

from pydantic import BaseModel, Field, model_validator


class FeedbackCreate(BaseModel):
    goal_id: int | None = None
    review_id: int | None = None
    comments: str = Field(min_length=1)
    feedback_type: str = Field(default="GENERAL", max_length=50)

    @model_validator(mode="after")
    def _has_target(self):
        if self.goal_id is None and self.review_id is None:
            raise ValueError("goal_id or review_id is required")
        return self


class FeedbackOut(BaseModel):
    id: int
    goal_id: int | None
    review_id: int | None
    given_by_id: int
    comments: str | None
    feedback_type: str | None
    given_at: datetime
