from collections import Counter

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.deps import get_directory, get_goal_engine, get_review_engine
from app.core.rbac import manager_side
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.goal import Goal, GoalStatus
from app.models.performance_review import PerformanceReview, ReviewStatus
from app.models.user import Role, User
from app.schemas.stats import DashboardStats, DepartmentStats, GoalStats, ReviewSummary
from app.workflow.directory import Directory
from app.workflow.goal_lifecycle import GoalLifecycle
from app.workflow.review_lifecycle import ReviewLifecycle

router = APIRouter(prefix="/stats", tags=["stats"])


def _rate(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole > 0 else 0.0


def _average(values: list[int]) -> float:
    return round(sum(values) / len(values), 2) if values else 0.0


def _count_by_status(goals: list[Goal]) -> Counter:
    return Counter(g.status for g in goals)


@router.get("/dashboard", response_model=DashboardStats, response_model_exclude_none=True)
def get_dashboard(
    db: Session = Depends(get_db),
    goals: GoalLifecycle = Depends(get_goal_engine),
    reviews: ReviewLifecycle = Depends(get_review_engine),
    directory: Directory = Depends(get_directory),
    user: User = Depends(get_current_user),
):
    """
    Dashboard metrics for the caller.

    Employees see their own goals, managers their team's queue, admins
    organisation-wide totals.
    """
    if user.role == Role.EMPLOYEE.value:
        mine = goals.list_for_owner(user.id)
        counts = _count_by_status(mine)
        return DashboardStats(
            role=user.role,
            total_goals=len(mine),
            completed_goals=counts[GoalStatus.COMPLETED.value],
            in_progress_goals=counts[GoalStatus.IN_PROGRESS.value],
            pending_goals=counts[GoalStatus.PENDING.value],
            completion_rate=_rate(counts[GoalStatus.COMPLETED.value], len(mine)),
        )

    if user.role == Role.MANAGER.value:
        team_goals = goals.list_for_manager(user.id)
        counts = _count_by_status(team_goals)
        return DashboardStats(
            role=user.role,
            team_size=len(directory.direct_reports(user.id)),
            total_team_goals=len(team_goals),
            pending_approvals=counts[GoalStatus.PENDING.value],
            pending_completions=counts[GoalStatus.PENDING_COMPLETION_APPROVAL.value],
        )

    all_goals = goals.list_all()
    return DashboardStats(
        role=user.role,
        total_users=db.query(User).count(),
        total_goals=len(all_goals),
        total_reviews=len(reviews.list_all()),
        completed_goals=_count_by_status(all_goals)[GoalStatus.COMPLETED.value],
    )


@router.get("/goals", response_model=GoalStats)
def get_goal_stats(
    goals: GoalLifecycle = Depends(get_goal_engine),
    _: User = Depends(manager_side),
):
    all_goals = goals.list_all()
    counts = _count_by_status(all_goals)
    return GoalStats(
        total_goals=len(all_goals),
        goals_by_status={s.value: counts[s.value] for s in GoalStatus},
        completion_rate=_rate(counts[GoalStatus.COMPLETED.value], len(all_goals)),
    )


@router.get("/reviews", response_model=ReviewSummary)
def get_review_summary(
    cycle_id: int | None = Query(default=None),
    department: str | None = Query(default=None),
    reviews: ReviewLifecycle = Depends(get_review_engine),
    _: User = Depends(manager_side),
):
    """Average self and manager ratings, optionally narrowed to one cycle or department."""
    if cycle_id is not None:
        reviews.cycles.get(cycle_id)
        rows: list[PerformanceReview] = reviews.list_for_cycle(cycle_id)
    else:
        rows = reviews.list_all()
    if department:
        rows = [r for r in rows if r.user and r.user.department == department]

    counts = Counter(r.status for r in rows)
    return ReviewSummary(
        cycle_id=cycle_id,
        department=department or None,
        total_reviews=len(rows),
        reviews_by_status={s.value: counts[s.value] for s in ReviewStatus},
        avg_self_rating=_average([r.self_rating for r in rows if r.self_rating is not None]),
        avg_manager_rating=_average([r.manager_rating for r in rows if r.manager_rating is not None]),
    )


@router.get("/departments", response_model=list[DepartmentStats])
def get_department_stats(
    db: Session = Depends(get_db),
    goals: GoalLifecycle = Depends(get_goal_engine),
    _: User = Depends(manager_side),
):
    members: dict[str, list[User]] = {}
    for u in db.query(User).filter(User.department.isnot(None)).order_by(User.department.asc()).all():
        if u.department:
            members.setdefault(u.department, []).append(u)

    out = []
    for department, users in members.items():
        dept_goals = [g for u in users for g in goals.list_for_owner(u.id)]
        completed = _count_by_status(dept_goals)[GoalStatus.COMPLETED.value]
        out.append(
            DepartmentStats(
                department=department,
                employee_count=len(users),
                total_goals=len(dept_goals),
                completed_goals=completed,
                completion_rate=_rate(completed, len(dept_goals)),
            )
        )
    return out
