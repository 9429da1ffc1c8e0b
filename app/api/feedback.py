from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.core.access import can_view_goal, can_view_review
from app.core.errors import InvalidInputError, NotFoundError, UnauthorizedError
from app.core.security import CallerContext, get_current_user
from app.db.session import get_db
from app.models.feedback import Feedback
from app.models.goal import Goal
from app.models.performance_review import PerformanceReview
from app.models.user import User
from app.schemas.feedback import FeedbackCreate, FeedbackOut
from app.workflow.base import utcnow

router = APIRouter(prefix="/feedback", tags=["feedback"])


def to_out(f: Feedback) -> FeedbackOut:
    return FeedbackOut(
        id=f.id,
        goal_id=f.goal_id,
        review_id=f.review_id,
        given_by_id=f.given_by_id,
        comments=f.comments,
        feedback_type=f.feedback_type,
        given_at=f.given_at,
    )


def _check_targets(db: Session, ctx: CallerContext, goal_id: int | None, review_id: int | None) -> None:
    if goal_id is not None:
        goal = db.get(Goal, goal_id)
        if not goal:
            raise NotFoundError("Goal not found", details={"id": goal_id})
        if not can_view_goal(ctx, goal):
            raise UnauthorizedError("You do not have access to this goal")
    if review_id is not None:
        review = db.get(PerformanceReview, review_id)
        if not review:
            raise NotFoundError("Performance review not found", details={"id": review_id})
        if not can_view_review(ctx, review):
            raise UnauthorizedError("You do not have access to this review")


@router.get("", response_model=list[FeedbackOut])
def list_feedback(
    goal_id: int | None = Query(default=None),
    review_id: int | None = Query(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    if goal_id is None and review_id is None:
        raise InvalidInputError("goal_id or review_id is required")
    _check_targets(db, CallerContext.for_user(user), goal_id, review_id)

    q = db.query(Feedback)
    if goal_id is not None:
        q = q.filter(Feedback.goal_id == goal_id)
    if review_id is not None:
        q = q.filter(Feedback.review_id == review_id)
    return [to_out(f) for f in q.order_by(Feedback.given_at.desc(), Feedback.id.desc()).all()]


@router.post("", response_model=FeedbackOut, status_code=status.HTTP_201_CREATED)
def create_feedback(
    payload: FeedbackCreate,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    _check_targets(db, CallerContext.for_user(user), payload.goal_id, payload.review_id)
    f = Feedback(
        goal_id=payload.goal_id,
        review_id=payload.review_id,
        given_by_id=user.id,
        comments=payload.comments,
        feedback_type=payload.feedback_type,
        given_at=utcnow(),
    )
    db.add(f)
    db.commit()
    return to_out(f)
