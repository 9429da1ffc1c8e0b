import enum
from datetime import datetime, date

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base


class GoalStatus(str, enum.Enum):
    PENDING = "PENDING"
    IN_PROGRESS = "IN_PROGRESS"
    PENDING_COMPLETION_APPROVAL = "PENDING_COMPLETION_APPROVAL"
    COMPLETED = "COMPLETED"
    REJECTED = "REJECTED"


TERMINAL_GOAL_STATUSES = frozenset({GoalStatus.COMPLETED.value, GoalStatus.REJECTED.value})


class GoalCategory(str, enum.Enum):
    TECHNICAL = "TECHNICAL"
    BEHAVIORAL = "BEHAVIORAL"
    PROFESSIONAL_DEVELOPMENT = "PROFESSIONAL_DEVELOPMENT"
    OTHER = "OTHER"


class GoalPriority(str, enum.Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class EvidenceVerificationStatus(str, enum.Enum):
    NOT_VERIFIED = "NOT_VERIFIED"
    VERIFIED = "VERIFIED"
    NEEDS_ADDITIONAL_LINK = "NEEDS_ADDITIONAL_LINK"
    REJECTED = "REJECTED"


class CompletionApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    ADDITIONAL_EVIDENCE_REQUIRED = "ADDITIONAL_EVIDENCE_REQUIRED"
    REJECTED = "REJECTED"


def _in(values) -> str:
    return ",".join(f"'{v.value}'" for v in values)


class Goal(Base):
    __tablename__ = "goals"
    __table_args__ = (
        CheckConstraint(f"status IN ({_in(GoalStatus)})", name="ck_goals_status"),
        CheckConstraint(f"category IN ({_in(GoalCategory)})", name="ck_goals_category"),
        CheckConstraint(f"priority IN ({_in(GoalPriority)})", name="ck_goals_priority"),
        CheckConstraint("end_date >= start_date", name="ck_goals_dates"),
        CheckConstraint(
            "evidence_verification_status IS NULL OR "
            f"evidence_verification_status IN ({_in(EvidenceVerificationStatus)})",
            name="ck_goals_evidence_verification_status",
        ),
        CheckConstraint(
            "completion_approval_status IS NULL OR "
            f"completion_approval_status IN ({_in(CompletionApprovalStatus)})",
            name="ck_goals_completion_approval_status",
        ),
        # PENDING => nothing has been submitted for completion yet
        CheckConstraint(
            "(status <> 'PENDING') OR (evidence_link IS NULL AND completion_submitted_at IS NULL)",
            name="ck_goals_pending_no_evidence",
        ),
        # COMPLETED => must carry the final completion timestamp
        CheckConstraint(
            "(status <> 'COMPLETED') OR (final_completion_at IS NOT NULL)",
            name="ck_goals_completed_ts",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(30), nullable=False, default=GoalCategory.OTHER.value)
    priority: Mapped[str] = mapped_column(String(20), nullable=False, default=GoalPriority.MEDIUM.value)

    assigned_to_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    assigned_manager_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True
    )

    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=GoalStatus.PENDING.value)

    # Approval of the goal itself
    approved_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Change-request loop
    change_requested: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_reviewed_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    last_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resubmitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Evidence, populated by completion submission
    evidence_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    evidence_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_access_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    completion_submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    evidence_verification_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    evidence_verification_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    evidence_verified_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    evidence_verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Completion decision
    completion_approval_status: Mapped[str | None] = mapped_column(String(30), nullable=True)
    completion_approved_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    completion_approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    final_completion_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    manager_completion_comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=sa.func.now(),
        onupdate=sa.func.now(),
    )

    # Optimistic locking
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version}

    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    assigned_manager = relationship("User", foreign_keys=[assigned_manager_id])

    progress_notes = relationship(
        "GoalProgressNote",
        order_by="GoalProgressNote.id",
        cascade="all, delete-orphan",
        back_populates="goal",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_GOAL_STATUSES

    @property
    def has_evidence(self) -> bool:
        return self.completion_submitted_at is not None
