from typing import Any, Callable, ContextManager, Protocol

from sqlalchemy.orm import Session

from app.core.dispatch import Dispatcher
from app.models.notification import Notification, NotificationStatus


class Notifier(Protocol):
    def send(
        self,
        *,
        recipient_id: int,
        category: str,
        message: str,
        related_type: str | None = None,
        related_id: int | None = None,
        priority: str | None = None,
        action_required: bool = False,
    ) -> None: ...


class DbNotifier:
    """Delivers in-app notifications as rows in the notifications table."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]], dispatcher: Dispatcher):
        self._session_factory = session_factory
        self._dispatcher = dispatcher

    def send(
        self,
        *,
        recipient_id: int,
        category: str,
        message: str,
        related_type: str | None = None,
        related_id: int | None = None,
        priority: str | None = None,
        action_required: bool = False,
    ) -> None:
        self._dispatcher.submit(
            self._write,
            dict(
                user_id=recipient_id,
                category=category,
                message=message,
                related_entity_type=related_type,
                related_entity_id=related_id,
                priority=priority,
                action_required=action_required,
                status=NotificationStatus.UNREAD.value,
            ),
        )

    def _write(self, row: dict[str, Any]) -> None:
        with self._session_factory() as db:
            db.add(Notification(**row))
            db.commit()
