from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from app.core.security import CallerContext
from app.models.goal import Goal
from app.models.review_cycle import ReviewCycle
from app.models.user import User


def create_user(
    db: Session,
    email: str,
    full_name: str = "User",
    role: str = "EMPLOYEE",
    manager: User | None = None,
    status: str = "ACTIVE",
) -> User:
    u = User(
        email=email,
        full_name=full_name,
        role=role,
        status=status,
        manager_id=manager.id if manager else None,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def create_cycle(
    db: Session,
    created_by: User | None = None,
    title: str = "2026 Annual Review",
    status: str = "ACTIVE",
    start_date: date = date(2026, 1, 1),
    end_date: date = date(2026, 12, 31),
    evidence_required: bool = True,
) -> ReviewCycle:
    c = ReviewCycle(
        title=title,
        status=status,
        start_date=start_date,
        end_date=end_date,
        evidence_required=evidence_required,
        requires_completion_approval=True,
        created_by_user_id=created_by.id if created_by else None,
    )
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def create_goal(
    db: Session,
    owner: User,
    manager: User,
    title: str = "Ship the reporting module",
    status: str = "PENDING",
    **fields,
) -> Goal:
    g = Goal(
        title=title,
        assigned_to_id=owner.id,
        assigned_manager_id=manager.id,
        start_date=fields.pop("start_date", date(2026, 1, 1)),
        end_date=fields.pop("end_date", date(2026, 3, 1)),
        status=status,
        **fields,
    )
    if status in ("PENDING_COMPLETION_APPROVAL", "COMPLETED"):
        g.evidence_link = g.evidence_link or "https://example.test/evidence"
        g.completion_submitted_at = g.completion_submitted_at or datetime.now(timezone.utc)
        g.completion_approval_status = g.completion_approval_status or "PENDING"
    if status == "COMPLETED":
        g.final_completion_at = datetime.now(timezone.utc)
        g.completion_approval_status = "APPROVED"
    db.add(g)
    db.commit()
    db.refresh(g)
    return g


def auth(user: User) -> dict[str, str]:
    return {"X-User-Email": user.email}


def ctx(user: User) -> CallerContext:
    return CallerContext.for_user(user)


class RecordingNotifier:
    def __init__(self):
        self.sent: list[dict] = []

    def send(self, **kwargs) -> None:
        self.sent.append(kwargs)

    def categories(self) -> list[str]:
        return [n["category"] for n in self.sent]


class FailingNotifier:
    def send(self, **kwargs) -> None:
        raise RuntimeError("notification gateway down")


class RecordingAuditRecorder:
    def __init__(self):
        self.records: list[dict] = []

    def record(self, **kwargs) -> None:
        self.records.append(kwargs)

    def actions(self) -> list[str]:
        return [r["action"] for r in self.records]
