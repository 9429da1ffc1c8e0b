from datetime import datetime
from typing import Any, Callable, ContextManager, Protocol

from sqlalchemy.orm import Session

from app.core.dispatch import Dispatcher
from app.models.audit_event import AuditEvent


class AuditRecorder(Protocol):
    def record(
        self,
        *,
        actor_id: int | None,
        action: str,
        related_type: str,
        related_id: int | None,
        details: str | None = None,
        outcome: str = "SUCCESS",
        timestamp: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...


class DbAuditRecorder:
    """Writes audit events on a session of its own, off the caller's transaction."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]], dispatcher: Dispatcher):
        self._session_factory = session_factory
        self._dispatcher = dispatcher

    def record(
        self,
        *,
        actor_id: int | None,
        action: str,
        related_type: str,
        related_id: int | None,
        details: str | None = None,
        outcome: str = "SUCCESS",
        timestamp: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        event = dict(
            actor_user_id=actor_id,
            action=action,
            entity_type=related_type,
            entity_id=related_id,
            details=details,
            outcome=outcome,
            event_metadata=metadata,
        )
        if timestamp is not None:
            event["created_at"] = timestamp
        self._dispatcher.submit(self._write, event)

    def _write(self, event: dict[str, Any]) -> None:
        with self._session_factory() as db:
            db.add(AuditEvent(**event))
            db.commit()
