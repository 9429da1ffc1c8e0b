from fastapi import APIRouter, Depends

from app.api.deps import get_directory
from app.core.security import get_current_user
from app.models.user import User
from app.workflow.directory import Directory

router = APIRouter(tags=["auth"])


@router.get("/me")
def me(
    current_user: User = Depends(get_current_user),
    directory: Directory = Depends(get_directory),
):
    """Current user with their manager and direct report count"""
    manager = directory.manager_of(current_user.id)
    return {
        "id": current_user.id,
        "email": current_user.email,
        "full_name": current_user.full_name,
        "department": current_user.department,
        "role": current_user.role,
        "is_active": current_user.is_active,
        "manager_id": manager.id if manager else None,
        "manager_name": manager.full_name if manager else None,
        "direct_report_count": len(directory.direct_reports(current_user.id)),
    }
