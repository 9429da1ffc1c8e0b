from fastapi import APIRouter, Depends, Header, Query, Response, status

from app.api.deps import get_review_engine
from app.api.goals import to_out as goal_to_out
from app.core.access import can_view_review
from app.core.errors import UnauthorizedError
from app.core.optimistic_lock import parse_if_match, set_etag
from app.core.rbac import employee_side, manager_side
from app.core.security import CallerContext, get_current_user
from app.models.performance_review import PerformanceReview
from app.models.user import Role, User
from app.schemas.goal import GoalOut
from app.schemas.review import (
    AcknowledgePayload,
    ManagerReviewSubmit,
    OpenReviewPayload,
    PerformanceReviewOut,
    SelfAssessmentDraft,
    SelfAssessmentSubmit,
)
from app.workflow.review_lifecycle import ManagerAssessment, ReviewLifecycle

router = APIRouter(prefix="/performance-reviews", tags=["performance-reviews"])


def to_out(r: PerformanceReview) -> PerformanceReviewOut:
    return PerformanceReviewOut(
        id=r.id,
        cycle_id=r.cycle_id,
        user_id=r.user_id,
        status=r.status,
        self_assessment=r.self_assessment,
        self_rating=r.self_rating,
        submitted_at=r.submitted_at,
        manager_feedback=r.manager_feedback,
        manager_rating=r.manager_rating,
        rating_justification=r.rating_justification,
        compensation_recommendations=r.compensation_recommendations,
        next_period_goals=r.next_period_goals,
        reviewed_by_id=r.reviewed_by_id,
        review_completed_at=r.review_completed_at,
        acknowledged_by_id=r.acknowledged_by_id,
        acknowledged_at=r.acknowledged_at,
        employee_response=r.employee_response,
        created_at=r.created_at,
        updated_at=r.updated_at,
        version=r.version,
    )


def _respond(response: Response, review: PerformanceReview) -> PerformanceReviewOut:
    set_etag(response, review.version)
    return to_out(review)


def _viewable(engine: ReviewLifecycle, ctx: CallerContext, review_id: int) -> PerformanceReview:
    review = engine.get(review_id)
    if not can_view_review(ctx, review):
        raise UnauthorizedError("You do not have access to this review")
    return review


@router.get("", response_model=list[PerformanceReviewOut])
def list_reviews(
    scope: str = Query(default="mine", pattern="^(mine|team|all)$"),
    cycle_id: int | None = Query(default=None),
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(get_current_user),
):
    if scope == "team":
        if user.role == Role.EMPLOYEE.value:
            raise UnauthorizedError("Only managers can list team reviews")
        reviews = engine.list_for_team(user.id)
    elif scope == "all":
        if user.role != Role.ADMIN.value:
            raise UnauthorizedError("Only admins can list all reviews")
        reviews = engine.list_for_cycle(cycle_id) if cycle_id is not None else engine.list_all()
    else:
        reviews = engine.list_for_user(user.id)

    if cycle_id is not None:
        reviews = [r for r in reviews if r.cycle_id == cycle_id]
    return [to_out(r) for r in reviews]


@router.get("/{review_id}", response_model=PerformanceReviewOut)
def get_review(
    review_id: int,
    response: Response,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(get_current_user),
):
    review = _viewable(engine, CallerContext.for_user(user), review_id)
    return _respond(response, review)


@router.get("/{review_id}/goals", response_model=list[GoalOut])
def list_linked_goals(
    review_id: int,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(get_current_user),
):
    _viewable(engine, CallerContext.for_user(user), review_id)
    return [goal_to_out(g) for g in engine.linked_goals(review_id)]


@router.post("/open", response_model=PerformanceReviewOut, status_code=status.HTTP_201_CREATED)
def open_review(
    response: Response,
    payload: OpenReviewPayload | None = None,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(employee_side),
):
    cycle_id = payload.cycle_id if payload else None
    if cycle_id is None:
        cycle_id = engine.cycles.get_active().id
    review = engine.open_review(CallerContext.for_user(user), cycle_id)
    return _respond(response, review)


@router.post("", response_model=PerformanceReviewOut, status_code=status.HTTP_201_CREATED)
def submit_self_assessment(
    payload: SelfAssessmentSubmit,
    response: Response,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(employee_side),
):
    review = engine.submit_self_assessment(
        CallerContext.for_user(user), payload.cycle_id, payload.self_assessment, payload.self_rating
    )
    return _respond(response, review)


@router.put("/{review_id}/draft", response_model=PerformanceReviewOut)
def update_self_assessment_draft(
    review_id: int,
    payload: SelfAssessmentDraft,
    response: Response,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(employee_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    review = engine.update_self_assessment_draft(
        CallerContext.for_user(user),
        review_id,
        payload.self_assessment,
        payload.self_rating,
        parse_if_match(if_match),
    )
    return _respond(response, review)


@router.put("/{review_id}", response_model=PerformanceReviewOut)
def submit_manager_review(
    review_id: int,
    payload: ManagerReviewSubmit,
    response: Response,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    assessment = ManagerAssessment(
        feedback=payload.manager_feedback,
        rating=payload.manager_rating,
        rating_justification=payload.rating_justification,
        compensation_recommendations=payload.compensation_recommendations,
        next_period_goals=payload.next_period_goals,
    )
    review = engine.submit_manager_review(
        CallerContext.for_user(user), review_id, assessment, parse_if_match(if_match)
    )
    return _respond(response, review)


@router.post("/{review_id}/acknowledge", response_model=PerformanceReviewOut)
def acknowledge_review(
    review_id: int,
    response: Response,
    payload: AcknowledgePayload | None = None,
    engine: ReviewLifecycle = Depends(get_review_engine),
    user: User = Depends(employee_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    employee_response = payload.employee_response if payload else None
    review = engine.acknowledge_review(
        CallerContext.for_user(user), review_id, employee_response, parse_if_match(if_match)
    )
    return _respond(response, review)
