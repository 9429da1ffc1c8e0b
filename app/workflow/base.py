import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from app.core.audit import AuditRecorder
from app.core.errors import StaleVersionError
from app.core.notifications import Notifier
from app.workflow.directory import Directory

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class LifecycleEngine:
    """
    Shared plumbing for the goal and review engines.

    State changes are committed first; notifications and audit records go out
    afterwards and never undo or fail a committed transition.
    """

    def __init__(self, db: Session, directory: Directory, notifier: Notifier, audit: AuditRecorder):
        self.db = db
        self.directory = directory
        self.notifier = notifier
        self.audit = audit

    def _commit(self) -> None:
        try:
            self.db.commit()
        except StaleDataError:
            self.db.rollback()
            raise StaleVersionError("Record was modified concurrently; reload and retry")
        except Exception:
            self.db.rollback()
            raise

    def _notify(self, **kwargs: Any) -> None:
        try:
            self.notifier.send(**kwargs)
        except Exception:
            logger.exception(
                "Notification %s to user %s failed",
                kwargs.get("category"),
                kwargs.get("recipient_id"),
            )

    def _record(
        self,
        *,
        actor_id: int | None,
        action: str,
        related_type: str,
        related_id: int | None,
        details: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        try:
            self.audit.record(
                actor_id=actor_id,
                action=action,
                related_type=related_type,
                related_id=related_id,
                details=details,
                outcome="SUCCESS",
                timestamp=utcnow(),
                metadata=metadata,
            )
        except Exception:
            logger.exception("Audit record %s for %s %s failed", action, related_type, related_id)
