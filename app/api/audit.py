from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.rbac import admin_only
from app.db.session import get_db
from app.models.audit_event import AuditEvent
from app.schemas.audit import AuditEventOut

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEventOut])
def list_audit_events(
    user_id: int | None = Query(default=None, description="Filter by acting user"),
    action: str | None = Query(default=None),
    entity_type: str | None = Query(default=None),
    entity_id: int | None = Query(default=None),
    start: datetime | None = Query(default=None, description="Events at or after this time"),
    end: datetime | None = Query(default=None, description="Events at or before this time"),
    limit: int = Query(default=50, ge=1, le=200),
    db: Session = Depends(get_db),
    _=Depends(admin_only),
):
    q = db.query(AuditEvent)

    if user_id is not None:
        q = q.filter(AuditEvent.actor_user_id == user_id)
    if action:
        q = q.filter(AuditEvent.action == action)
    if entity_type:
        q = q.filter(AuditEvent.entity_type == entity_type)
    if entity_id is not None:
        q = q.filter(AuditEvent.entity_id == entity_id)
    if start:
        q = q.filter(AuditEvent.created_at >= start)
    if end:
        q = q.filter(AuditEvent.created_at <= end)

    rows = q.order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc()).limit(limit).all()

    return [
        AuditEventOut(
            id=r.id,
            actor_user_id=r.actor_user_id,
            action=r.action,
            entity_type=r.entity_type,
            entity_id=r.entity_id,
            details=r.details,
            outcome=r.outcome,
            metadata=r.event_metadata,
            created_at=r.created_at,
        )
        for r in rows
    ]
