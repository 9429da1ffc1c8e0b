import enum
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
import sqlalchemy as sa

from app.db.base import Base


class ReviewStatus(str, enum.Enum):
    PENDING = "PENDING"
    SELF_ASSESSMENT_COMPLETED = "SELF_ASSESSMENT_COMPLETED"
    COMPLETED = "COMPLETED"
    COMPLETED_AND_ACKNOWLEDGED = "COMPLETED_AND_ACKNOWLEDGED"


class PerformanceReview(Base):
    __tablename__ = "performance_reviews"
    __table_args__ = (
        UniqueConstraint("cycle_id", "user_id", name="uq_performance_reviews_cycle_user"),
        CheckConstraint(
            "status IN ('PENDING','SELF_ASSESSMENT_COMPLETED','COMPLETED','COMPLETED_AND_ACKNOWLEDGED')",
            name="ck_performance_reviews_status",
        ),
        CheckConstraint(
            "self_rating IS NULL OR (self_rating BETWEEN 1 AND 5)",
            name="ck_performance_reviews_self_rating",
        ),
        CheckConstraint(
            "manager_rating IS NULL OR (manager_rating BETWEEN 1 AND 5)",
            name="ck_performance_reviews_manager_rating",
        ),
        # PENDING => nothing submitted yet
        CheckConstraint(
            "(status <> 'PENDING') OR (submitted_at IS NULL AND review_completed_at IS NULL)",
            name="ck_review_ts_pending",
        ),
        # COMPLETED => manager has signed off
        CheckConstraint(
            "(status <> 'COMPLETED') OR (submitted_at IS NOT NULL AND review_completed_at IS NOT NULL)",
            name="ck_review_ts_completed",
        ),
        # COMPLETED_AND_ACKNOWLEDGED => employee has signed off too
        CheckConstraint(
            "(status <> 'COMPLETED_AND_ACKNOWLEDGED') OR "
            "(review_completed_at IS NOT NULL AND acknowledged_at IS NOT NULL)",
            name="ck_review_ts_acknowledged",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    cycle_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("review_cycles.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    status: Mapped[str] = mapped_column(String(30), nullable=False, default=ReviewStatus.PENDING.value)

    # Employee side
    self_assessment: Mapped[str | None] = mapped_column(Text, nullable=True)
    self_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Manager side
    manager_feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    manager_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_justification: Mapped[str | None] = mapped_column(Text, nullable=True)
    compensation_recommendations: Mapped[str | None] = mapped_column(Text, nullable=True)
    next_period_goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    reviewed_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    review_completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Acknowledgement
    acknowledged_by_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    employee_response: Mapped[str | None] = mapped_column(Text, nullable=True)

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

    user = relationship("User", foreign_keys=[user_id])
    cycle = relationship("ReviewCycle")
