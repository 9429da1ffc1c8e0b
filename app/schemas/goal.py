from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from app.models.goal import EvidenceVerificationStatus, GoalCategory, GoalPriority


class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: GoalCategory = GoalCategory.OTHER
    priority: GoalPriority = GoalPriority.MEDIUM
    start_date: date
    end_date: date
    manager_id: int


class GoalUpdate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str | None = None
    category: GoalCategory = GoalCategory.OTHER
    priority: GoalPriority = GoalPriority.MEDIUM
    start_date: date
    end_date: date


class ChangeRequestPayload(BaseModel):
    comments: str = Field(min_length=1)


class CompletionSubmitPayload(BaseModel):
    evidence_link: str | None = Field(default=None, max_length=500)
    evidence_description: str | None = None
    evidence_access_notes: str | None = None
    completion_notes: str | None = None


class EvidenceVerifyPayload(BaseModel):
    # Unknown values are rejected here (422) before the engine sees them
    status: EvidenceVerificationStatus
    notes: str | None = None


class CompletionApprovePayload(BaseModel):
    comments: str | None = None


class ReasonPayload(BaseModel):
    reason: str = Field(min_length=1)


class ProgressNoteCreate(BaseModel):
    note: str = Field(min_length=1)

    @model_validator(mode="after")
    def _not_blank(self):
        if not self.note.strip():
            raise ValueError("note must not be blank")
        return self


class ProgressNoteOut(BaseModel):
    id: int
    goal_id: int
    author_user_id: int | None
    note: str
    recorded_at: datetime


class CompletionApprovalOut(BaseModel):
    id: int
    goal_id: int
    decided_by_id: int | None
    decision: str
    decided_at: datetime
    manager_comments: str | None
    evidence_verified: bool
    decision_rationale: str | None


class GoalOut(BaseModel):
    id: int
    title: str
    description: str | None
    category: str
    priority: str
    status: str
    assigned_to_id: int
    assigned_manager_id: int
    start_date: date
    end_date: date

    approved_by_id: int | None
    approved_at: datetime | None
    change_requested: bool
    last_reviewed_by_id: int | None
    last_reviewed_at: datetime | None
    resubmitted_at: datetime | None

    evidence_link: str | None
    evidence_description: str | None
    evidence_access_notes: str | None
    completion_notes: str | None
    completion_submitted_at: datetime | None
    evidence_verification_status: str | None
    evidence_verification_notes: str | None
    evidence_verified_by_id: int | None
    evidence_verified_at: datetime | None

    completion_approval_status: str | None
    completion_approved_by_id: int | None
    completion_approved_at: datetime | None
    final_completion_at: datetime | None
    manager_completion_comments: str | None

    created_at: datetime
    updated_at: datetime
    version: int
