from datetime import date, datetime
from pydantic import BaseModel, Field

from app.models.review_cycle import CycleStatus


class ReviewCycleCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    start_date: date
    end_date: date
    status: CycleStatus = CycleStatus.ACTIVE
    requires_completion_approval: bool = True
    evidence_required: bool = True


class ReviewCycleUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    start_date: date | None = None
    end_date: date | None = None
    status: CycleStatus | None = None
    requires_completion_approval: bool | None = None
    evidence_required: bool | None = None


class ReviewCycleOut(BaseModel):
    id: int
    title: str
    start_date: date
    end_date: date
    status: str
    requires_completion_approval: bool
    evidence_required: bool
    created_by_user_id: int | None
    created_at: datetime
    updated_at: datetime
