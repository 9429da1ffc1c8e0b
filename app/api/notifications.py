from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.errors import NotFoundError, UnauthorizedError
from app.core.security import get_current_user
from app.db.session import get_db
from app.models.notification import Notification, NotificationStatus
from app.models.user import User
from app.schemas.notification import NotificationOut
from app.workflow.base import utcnow

router = APIRouter(prefix="/notifications", tags=["notifications"])


def to_out(n: Notification) -> NotificationOut:
    return NotificationOut(
        id=n.id,
        user_id=n.user_id,
        category=n.category,
        message=n.message,
        related_entity_type=n.related_entity_type,
        related_entity_id=n.related_entity_id,
        status=n.status,
        priority=n.priority,
        action_required=n.action_required,
        created_at=n.created_at,
        read_at=n.read_at,
    )


@router.get("", response_model=list[NotificationOut])
def list_notifications(
    status_filter: NotificationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    q = db.query(Notification).filter(Notification.user_id == user.id)
    if status_filter:
        q = q.filter(Notification.status == status_filter.value)
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return [to_out(n) for n in rows]


@router.put("/mark-all-read")
def mark_all_read(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    updated = (
        db.query(Notification)
        .filter(
            Notification.user_id == user.id,
            Notification.status == NotificationStatus.UNREAD.value,
        )
        .update(
            {Notification.status: NotificationStatus.READ.value, Notification.read_at: utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    return {"updated": updated}


@router.put("/{notification_id}", response_model=NotificationOut)
def mark_read(
    notification_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    n = db.get(Notification, notification_id)
    if not n:
        raise NotFoundError("Notification not found", details={"id": notification_id})
    if n.user_id != user.id:
        raise UnauthorizedError("You can only update your own notifications")
    if n.status != NotificationStatus.READ.value:
        n.status = NotificationStatus.READ.value
        n.read_at = utcnow()
        db.commit()
    return to_out(n)
