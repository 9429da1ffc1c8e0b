from sqlalchemy.orm import Session

from app.core.errors import NotFoundError
from app.models.user import User, UserStatus


class Directory:
    """Read-only lookups over users and the reporting line."""

    def __init__(self, db: Session):
        self.db = db

    def find_user(self, user_id: int) -> User | None:
        return self.db.get(User, user_id)

    def get_user(self, user_id: int, *, label: str = "User") -> User:
        user = self.find_user(user_id)
        if not user:
            raise NotFoundError(f"{label} not found", details={"id": user_id})
        return user

    def get_active_user(self, user_id: int, *, label: str = "User") -> User:
        user = self.get_user(user_id, label=label)
        if not user.is_active:
            raise NotFoundError(f"{label} not found or inactive", details={"id": user_id})
        return user

    def manager_of(self, user_id: int) -> User | None:
        user = self.find_user(user_id)
        if not user or user.manager_id is None:
            return None
        return self.find_user(user.manager_id)

    def is_manager_of(self, manager_id: int, user_id: int) -> bool:
        user = self.find_user(user_id)
        return bool(user) and user.manager_id == manager_id

    def direct_reports(self, manager_id: int) -> list[User]:
        return (
            self.db.query(User)
            .filter(User.manager_id == manager_id, User.status == UserStatus.ACTIVE.value)
            .order_by(User.full_name.asc(), User.id.asc())
            .all()
        )

    def would_create_cycle(self, user_id: int, new_manager_id: int) -> bool:
        """True if making new_manager_id the manager of user_id closes a loop."""
        seen: set[int] = set()
        current: int | None = new_manager_id
        while current is not None and current not in seen:
            if current == user_id:
                return True
            seen.add(current)
            node = self.find_user(current)
            current = node.manager_id if node else None
        return False
