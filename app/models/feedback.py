from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        CheckConstraint(
            "goal_id IS NOT NULL OR review_id IS NOT NULL",
            name="ck_feedback_has_target",
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    goal_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=True, index=True
    )
    review_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=True, index=True
    )
    given_by_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
    )

    comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    feedback_type: Mapped[str | None] = mapped_column(String(50), nullable=True)  # CHANGE_REQUEST, GENERAL, ...
    given_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
