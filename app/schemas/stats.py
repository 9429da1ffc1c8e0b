from pydantic import BaseModel


class DashboardStats(BaseModel):
    """Role-scoped dashboard; fields that do not apply to the caller's role are omitted"""
    role: str
    # EMPLOYEE
    total_goals: int | None = None
    completed_goals: int | None = None
    in_progress_goals: int | None = None
    pending_goals: int | None = None
    completion_rate: float | None = None
    # MANAGER
    team_size: int | None = None
    total_team_goals: int | None = None
    pending_approvals: int | None = None
    pending_completions: int | None = None
    # ADMIN (also total_goals, completed_goals)
    total_users: int | None = None
    total_reviews: int | None = None


class GoalStats(BaseModel):
    total_goals: int = 0
    goals_by_status: dict[str, int] = {}  # every GoalStatus, zero-filled
    completion_rate: float = 0.0  # Percentage of goals COMPLETED


class ReviewSummary(BaseModel):
    cycle_id: int | None = None
    department: str | None = None
    total_reviews: int = 0
    reviews_by_status: dict[str, int] = {}
    avg_self_rating: float = 0.0
    avg_manager_rating: float = 0.0


class DepartmentStats(BaseModel):
    department: str
    employee_count: int = 0
    total_goals: int = 0
    completed_goals: int = 0
    completion_rate: float = 0.0
