# seed_dev.py
from datetime import date

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.models.goal import Goal, GoalCategory, GoalPriority, GoalStatus
from app.models.review_cycle import CycleStatus, ReviewCycle
from app.models.user import Role, User, UserStatus


# ---------- helpers ----------

def get_or_create_user(
    db: Session,
    email: str,
    full_name: str,
    role: Role,
    manager: User | None = None,
    department: str | None = None,
) -> User:
    u = db.query(User).filter(User.email == email).one_or_none()
    manager_id = manager.id if manager else None
    if u:
        # keep these up to date in dev
        changed = False
        if u.full_name != full_name:
            u.full_name = full_name
            changed = True
        if u.role != role.value:
            u.role = role.value
            changed = True
        if u.manager_id != manager_id:
            u.manager_id = manager_id
            changed = True
        if not u.is_active:
            u.status = UserStatus.ACTIVE.value
            changed = True
        if changed:
            db.commit()
            db.refresh(u)
        return u

    u = User(
        email=email,
        full_name=full_name,
        role=role.value,
        manager_id=manager_id,
        department=department,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def get_or_create_cycle(
    db: Session,
    *,
    title: str,
    created_by_user_id: int,
    start_date: date,
    end_date: date,
) -> ReviewCycle:
    c = db.query(ReviewCycle).filter(ReviewCycle.title == title).one_or_none()
    if c:
        return c

    # Only one cycle may be ACTIVE at a time
    others_active = (
        db.query(ReviewCycle).filter(ReviewCycle.status == CycleStatus.ACTIVE.value).count() > 0
    )
    c = ReviewCycle(
        title=title,
        start_date=start_date,
        end_date=end_date,
        status=CycleStatus.CLOSED.value if others_active else CycleStatus.ACTIVE.value,
        requires_completion_approval=True,
        evidence_required=True,
        created_by_user_id=created_by_user_id,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def get_or_create_goal(
    db: Session,
    *,
    title: str,
    owner: User,
    manager: User,
    status: GoalStatus = GoalStatus.PENDING,
    category: GoalCategory = GoalCategory.TECHNICAL,
    priority: GoalPriority = GoalPriority.MEDIUM,
) -> Goal:
    g = (
        db.query(Goal)
        .filter(Goal.title == title, Goal.assigned_to_id == owner.id)
        .one_or_none()
    )
    if g:
        return g

    g = Goal(
        title=title,
        assigned_to_id=owner.id,
        assigned_manager_id=manager.id,
        category=category.value,
        priority=priority.value,
        start_date=date(2026, 1, 1),
        end_date=date(2026, 6, 30),
        status=status.value,
    )
    db.add(g)
    db.commit()
    db.refresh(g)
    return g


def main():
    db = SessionLocal()
    try:
        # ---- Users ----
        admin = get_or_create_user(db, "admin@local.test", "Admin Local", Role.ADMIN)
        manager = get_or_create_user(
            db, "manager@local.test", "Manager Local", Role.MANAGER, department="Engineering"
        )
        employee = get_or_create_user(
            db, "employee@local.test", "Employee Local", Role.EMPLOYEE, manager=manager, department="Engineering"
        )

        # ---- Cycle ----
        cycle = get_or_create_cycle(
            db,
            title="2026 Annual Review",
            created_by_user_id=admin.id,
            start_date=date(2026, 1, 1),
            end_date=date(2026, 12, 31),
        )

        # ---- Goals ----
        pending = get_or_create_goal(
            db, title="Ship the reporting module", owner=employee, manager=manager, priority=GoalPriority.HIGH
        )
        in_progress = get_or_create_goal(
            db,
            title="Mentor a new hire",
            owner=employee,
            manager=manager,
            status=GoalStatus.IN_PROGRESS,
            category=GoalCategory.BEHAVIORAL,
        )

        print("\n=== DEV SEED COMPLETE ===")
        print("Users:")
        print(f"  admin:    {admin.email}")
        print(f"  manager:  {manager.email}")
        print(f"  employee: {employee.email}")

        print("\nCycle:")
        print(f"  cycle_id: {cycle.id} (status={cycle.status})")

        print("\nGoals:")
        print(f"  {pending.id}: {pending.title} ({pending.status})")
        print(f"  {in_progress.id}: {in_progress.title} ({in_progress.status})")

        print("\nNext API steps:")
        print(f"  PUT  /goals/{pending.id}/approve                (as manager@local.test)")
        print(f"  POST /goals/{in_progress.id}/submit-completion  (as employee@local.test)")
        print("  POST /performance-reviews                       (as employee@local.test)")

    finally:
        db.close()


if __name__ == "__main__":
    main()
