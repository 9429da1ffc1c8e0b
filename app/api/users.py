from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_audit_recorder, get_directory, get_notifier
from app.core.audit import AuditRecorder
from app.core.errors import InvalidInputError, UnauthorizedError
from app.core.notifications import Notifier
from app.core.rbac import admin_only, manager_side
from app.db.session import get_db
from app.models.notification import NotificationCategory
from app.models.user import Role, User
from app.schemas.pagination import page_of
from app.schemas.user import UserCreate, UserOut, UserUpdate
from app.workflow.base import utcnow
from app.workflow.directory import Directory

router = APIRouter(prefix="/users", tags=["users"])


def to_out(u: User) -> UserOut:
    return UserOut(
        id=u.id,
        email=u.email,
        full_name=u.full_name,
        department=u.department,
        role=u.role,
        status=u.status,
        manager_id=u.manager_id,
        created_at=u.created_at,
        updated_at=u.updated_at,
    )


def _assign_manager(directory: Directory, user_id: int | None, manager_id: int) -> None:
    manager = directory.get_active_user(manager_id, label="Manager")
    if user_id is not None and manager.id == user_id:
        raise InvalidInputError("A user cannot be their own manager")
    if user_id is not None and directory.would_create_cycle(user_id, manager.id):
        raise InvalidInputError(
            "Manager assignment would create a reporting cycle",
            details={"user_id": user_id, "manager_id": manager.id},
        )


@router.get("")
def list_users(
    search: str | None = Query(default=None, description="Search by name or email"),
    role: Role | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    include_pagination: bool = Query(default=False, description="Include pagination metadata"),
    db: Session = Depends(get_db),
    _: User = Depends(admin_only),
):
    query = db.query(User)
    if search:
        term = f"%{search.lower()}%"
        query = query.filter(User.full_name.ilike(term) | User.email.ilike(term))
    if role:
        query = query.filter(User.role == role.value)

    total = query.count()
    users = query.order_by(User.full_name.asc(), User.id.asc()).offset(offset).limit(limit).all()
    items = [to_out(u) for u in users]

    return page_of(items, total=total, limit=limit, offset=offset, include_pagination=include_pagination)


@router.get("/{user_id}", response_model=UserOut)
def get_user(
    user_id: int,
    directory: Directory = Depends(get_directory),
    _: User = Depends(admin_only),
):
    return to_out(directory.get_user(user_id))


@router.get("/{user_id}/team", response_model=list[UserOut])
def get_team(
    user_id: int,
    directory: Directory = Depends(get_directory),
    current_user: User = Depends(manager_side),
):
    if current_user.role != Role.ADMIN.value and current_user.id != user_id:
        raise UnauthorizedError("Managers can only view their own team")
    directory.get_user(user_id)
    return [to_out(u) for u in directory.direct_reports(user_id)]


@router.post("", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    directory: Directory = Depends(get_directory),
    notifier: Notifier = Depends(get_notifier),
    audit: AuditRecorder = Depends(get_audit_recorder),
    current_user: User = Depends(admin_only),
):
    email = payload.email.lower()
    if db.query(User).filter(User.email == email).one_or_none():
        raise HTTPException(status_code=409, detail="A user with this email already exists")
    if payload.manager_id is not None:
        _assign_manager(directory, None, payload.manager_id)

    u = User(
        email=email,
        full_name=payload.full_name,
        department=payload.department,
        role=payload.role.value,
        manager_id=payload.manager_id,
    )
    db.add(u)
    db.commit()

    notifier.send(
        recipient_id=u.id,
        category=NotificationCategory.ACCOUNT_CREATED.value,
        message=f"Welcome {u.full_name}! Your account has been created.",
        related_type="User",
        related_id=u.id,
    )
    audit.record(
        actor_id=current_user.id,
        action="USER_CREATED",
        related_type="User",
        related_id=u.id,
        details=f"User created: {u.email}",
        timestamp=utcnow(),
        metadata={"role": u.role, "manager_id": u.manager_id},
    )
    return to_out(u)


@router.patch("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    db: Session = Depends(get_db),
    directory: Directory = Depends(get_directory),
    audit: AuditRecorder = Depends(get_audit_recorder),
    current_user: User = Depends(admin_only),
):
    u = directory.get_user(user_id)
    before = {"role": u.role, "status": u.status, "manager_id": u.manager_id}

    if payload.clear_manager:
        u.manager_id = None
    elif payload.manager_id is not None and payload.manager_id != u.manager_id:
        _assign_manager(directory, u.id, payload.manager_id)
        u.manager_id = payload.manager_id

    if payload.full_name is not None:
        u.full_name = payload.full_name
    if payload.department is not None:
        u.department = payload.department
    if payload.role is not None:
        u.role = payload.role.value
    if payload.status is not None:
        u.status = payload.status.value
    db.commit()

    audit.record(
        actor_id=current_user.id,
        action="USER_UPDATED",
        related_type="User",
        related_id=u.id,
        details=f"User updated: {u.email}",
        timestamp=utcnow(),
        metadata={"before": before, "after": {"role": u.role, "status": u.status, "manager_id": u.manager_id}},
    )
    return to_out(u)
