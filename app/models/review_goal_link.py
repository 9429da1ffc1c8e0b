from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.base import Base


class ReviewGoalLink(Base):
    __tablename__ = "review_goal_links"
    __table_args__ = (
        UniqueConstraint("review_id", "goal_id", name="uq_review_goal_links_review_goal"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    review_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("performance_reviews.id", ondelete="CASCADE"), nullable=False, index=True
    )
    goal_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("goals.id", ondelete="CASCADE"), nullable=False
    )
    linked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
