import logging

from fastapi import Depends, HTTPException, status

from app.core.security import get_current_user
from app.models.user import Role, User

logger = logging.getLogger(__name__)


def require_roles(*required: str | Role):
    """
    Route guard admitting any of the given roles:
      Depends(require_roles(Role.ADMIN))
      Depends(require_roles("EMPLOYEE", "MANAGER"))
    """
    allowed = {r.value if isinstance(r, Role) else r for r in required}

    def _dep(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            logger.info("Role %s denied, route requires one of %s", user.role, sorted(allowed))
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Forbidden. Requires one of: {sorted(allowed)}",
            )
        return user

    return _dep


employee_side = require_roles(Role.EMPLOYEE, Role.MANAGER)
manager_side = require_roles(Role.MANAGER, Role.ADMIN)
admin_only = require_roles(Role.ADMIN)
