from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_audit_recorder, get_cycle_gate
from app.core.audit import AuditRecorder
from app.core.errors import InvalidInputError
from app.core.rbac import admin_only
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.review_cycle import CycleStatus, ReviewCycle
from app.models.user import User
from app.schemas.pagination import page_of
from app.schemas.review_cycle import ReviewCycleCreate, ReviewCycleOut, ReviewCycleUpdate
from app.workflow.base import utcnow
from app.workflow.cycle_gate import ReviewCycleGate

router = APIRouter(prefix="/cycles", tags=["review-cycles"])


def to_out(c: ReviewCycle) -> ReviewCycleOut:
    return ReviewCycleOut(
        id=c.id,
        title=c.title,
        start_date=c.start_date,
        end_date=c.end_date,
        status=c.status,
        requires_completion_approval=c.requires_completion_approval,
        evidence_required=c.evidence_required,
        created_by_user_id=c.created_by_user_id,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _snapshot(c: ReviewCycle) -> dict:
    return {
        "title": c.title,
        "start_date": str(c.start_date),
        "end_date": str(c.end_date),
        "status": c.status,
        "requires_completion_approval": c.requires_completion_approval,
        "evidence_required": c.evidence_required,
    }


@router.get("")
def list_cycles(
    search: str | None = Query(default=None, description="Search by title"),
    status_filter: CycleStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500, description="Maximum number of results"),
    offset: int = Query(default=0, ge=0, description="Number of results to skip"),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(get_current_user),
):
    """
    List review cycles, newest first.

    Use ?include_pagination=true to get pagination metadata.
    """
    query = db.query(ReviewCycle)

    if search:
        query = query.filter(ReviewCycle.title.ilike(f"%{search.lower()}%"))
    if status_filter:
        query = query.filter(ReviewCycle.status == status_filter.value)

    total = query.count()
    cycles = (
        query.order_by(ReviewCycle.start_date.desc(), ReviewCycle.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    items = [to_out(c) for c in cycles]

    return page_of(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)


@router.get("/active", response_model=ReviewCycleOut)
def get_active_cycle(
    gate: ReviewCycleGate = Depends(get_cycle_gate),
    _: User = Depends(get_current_user),
):
    return to_out(gate.get_active())


@router.get("/{cycle_id}", response_model=ReviewCycleOut)
def get_cycle(
    cycle_id: int,
    gate: ReviewCycleGate = Depends(get_cycle_gate),
    _: User = Depends(get_current_user),
):
    return to_out(gate.get(cycle_id))


@router.post("", response_model=ReviewCycleOut, status_code=status.HTTP_201_CREATED)
def create_cycle(
    payload: ReviewCycleCreate,
    db: Session = Depends(get_db),
    gate: ReviewCycleGate = Depends(get_cycle_gate),
    audit: AuditRecorder = Depends(get_audit_recorder),
    current_user: User = Depends(admin_only),
):
    if payload.end_date < payload.start_date:
        raise InvalidInputError("End date must be on or after start date")
    if payload.status == CycleStatus.ACTIVE:
        gate.assert_can_activate()

    c = ReviewCycle(
        title=payload.title,
        start_date=payload.start_date,
        end_date=payload.end_date,
        status=payload.status.value,
        requires_completion_approval=payload.requires_completion_approval,
        evidence_required=payload.evidence_required,
        created_by_user_id=current_user.id,
    )
    db.add(c)
    db.commit()

    audit.record(
        actor_id=current_user.id,
        action="REVIEW_CYCLE_CREATED",
        related_type="ReviewCycle",
        related_id=c.id,
        details=f"Review cycle created: {c.title}",
        timestamp=utcnow(),
        metadata=_snapshot(c),
    )
    return to_out(c)


@router.put("/{cycle_id}", response_model=ReviewCycleOut)
def update_cycle(
    cycle_id: int,
    payload: ReviewCycleUpdate,
    db: Session = Depends(get_db),
    gate: ReviewCycleGate = Depends(get_cycle_gate),
    audit: AuditRecorder = Depends(get_audit_recorder),
    current_user: User = Depends(admin_only),
):
    c = gate.get(cycle_id)
    before = _snapshot(c)

    start_date = payload.start_date or c.start_date
    end_date = payload.end_date or c.end_date
    if end_date < start_date:
        raise InvalidInputError("End date must be on or after start date")
    if payload.status == CycleStatus.ACTIVE and c.status != CycleStatus.ACTIVE.value:
        gate.assert_can_activate(exclude_cycle_id=c.id)

    if payload.title is not None:
        c.title = payload.title
    c.start_date = start_date
    c.end_date = end_date
    if payload.status is not None:
        c.status = payload.status.value
    if payload.requires_completion_approval is not None:
        c.requires_completion_approval = payload.requires_completion_approval
    if payload.evidence_required is not None:
        c.evidence_required = payload.evidence_required
    db.commit()

    audit.record(
        actor_id=current_user.id,
        action="REVIEW_CYCLE_UPDATED",
        related_type="ReviewCycle",
        related_id=c.id,
        details=f"Review cycle updated: {c.title}",
        timestamp=utcnow(),
        metadata={"before": before, "after": _snapshot(c)},
    )
    return to_out(c)
