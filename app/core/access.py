from app.core.errors import UnauthorizedError
from app.core.security import CallerContext
from app.models.goal import Goal
from app.models.performance_review import PerformanceReview
from app.models.user import Role


def can_act_on_goal_as_manager(ctx: CallerContext, goal: Goal) -> bool:
    return ctx.user_id == goal.assigned_manager_id


def can_act_on_goal_as_employee(ctx: CallerContext, goal: Goal) -> bool:
    return ctx.user_id == goal.assigned_to_id


def can_delete_goal(ctx: CallerContext, goal: Goal) -> bool:
    # Employees may only remove their own goals; managers and admins any goal
    if ctx.role == Role.EMPLOYEE:
        return can_act_on_goal_as_employee(ctx, goal)
    return True


def can_act_on_review_as_employee(ctx: CallerContext, review: PerformanceReview) -> bool:
    return ctx.user_id == review.user_id


def can_act_on_review_as_manager(ctx: CallerContext, review: PerformanceReview) -> bool:
    manager_id = review.user.manager_id if review.user else None
    return manager_id is not None and ctx.user_id == manager_id


def assert_goal_manager(ctx: CallerContext, goal: Goal) -> None:
    if not can_act_on_goal_as_manager(ctx, goal):
        raise UnauthorizedError("Only the assigned manager can perform this action")


def assert_goal_owner(ctx: CallerContext, goal: Goal) -> None:
    if not can_act_on_goal_as_employee(ctx, goal):
        raise UnauthorizedError("Only the goal owner can perform this action")


def assert_review_owner(ctx: CallerContext, review: PerformanceReview) -> None:
    if not can_act_on_review_as_employee(ctx, review):
        raise UnauthorizedError("Only the reviewed employee can perform this action")


def assert_review_manager(ctx: CallerContext, review: PerformanceReview) -> None:
    if not can_act_on_review_as_manager(ctx, review):
        raise UnauthorizedError("Only the employee's manager can perform this action")


def can_view_goal(ctx: CallerContext, goal: Goal) -> bool:
    return (
        ctx.role == Role.ADMIN
        or can_act_on_goal_as_employee(ctx, goal)
        or can_act_on_goal_as_manager(ctx, goal)
    )


def can_view_review(ctx: CallerContext, review: PerformanceReview) -> bool:
    return (
        ctx.role == Role.ADMIN
        or can_act_on_review_as_employee(ctx, review)
        or can_act_on_review_as_manager(ctx, review)
    )
