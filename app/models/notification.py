import enum
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column
import sqlalchemy as sa

from app.db.base import Base


class NotificationCategory(str, enum.Enum):
    ACCOUNT_CREATED = "ACCOUNT_CREATED"
    GOAL_SUBMITTED = "GOAL_SUBMITTED"
    GOAL_APPROVED = "GOAL_APPROVED"
    GOAL_CHANGE_REQUESTED = "GOAL_CHANGE_REQUESTED"
    GOAL_RESUBMITTED = "GOAL_RESUBMITTED"
    GOAL_COMPLETION_SUBMITTED = "GOAL_COMPLETION_SUBMITTED"
    GOAL_COMPLETION_APPROVED = "GOAL_COMPLETION_APPROVED"
    GOAL_COMPLETION_REJECTED = "GOAL_COMPLETION_REJECTED"
    ADDITIONAL_EVIDENCE_REQUIRED = "ADDITIONAL_EVIDENCE_REQUIRED"
    SELF_ASSESSMENT_SUBMITTED = "SELF_ASSESSMENT_SUBMITTED"
    PERFORMANCE_REVIEW_COMPLETED = "PERFORMANCE_REVIEW_COMPLETED"
    REVIEW_ACKNOWLEDGED = "REVIEW_ACKNOWLEDGED"


class NotificationStatus(str, enum.Enum):
    UNREAD = "UNREAD"
    READ = "READ"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint("status IN ('UNREAD','READ')", name="ck_notifications_status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    # Deep link to the entity the notification is about
    related_entity_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    related_entity_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=NotificationStatus.UNREAD.value)
    priority: Mapped[str | None] = mapped_column(String(20), nullable=True)
    action_required: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=sa.func.now()
    )
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
