from fastapi import BackgroundTasks, Depends
from sqlalchemy.orm import Session

from app.core.audit import AuditRecorder, DbAuditRecorder
from app.core.config import settings
from app.core.dispatch import BackgroundTaskDispatcher, Dispatcher, InlineDispatcher
from app.core.notifications import DbNotifier, Notifier
from app.db.session import get_db, get_session_factory
from app.workflow.cycle_gate import ReviewCycleGate
from app.workflow.directory import Directory
from app.workflow.goal_lifecycle import GoalLifecycle
from app.workflow.review_lifecycle import ReviewLifecycle


def get_dispatcher(background_tasks: BackgroundTasks) -> Dispatcher:
    if settings.BACKGROUND_SIDE_EFFECTS:
        return BackgroundTaskDispatcher(background_tasks)
    return InlineDispatcher()


def get_notifier(
    session_factory=Depends(get_session_factory),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Notifier:
    return DbNotifier(session_factory, dispatcher)


def get_audit_recorder(
    session_factory=Depends(get_session_factory),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> AuditRecorder:
    return DbAuditRecorder(session_factory, dispatcher)


def get_directory(db: Session = Depends(get_db)) -> Directory:
    return Directory(db)


def get_cycle_gate(db: Session = Depends(get_db)) -> ReviewCycleGate:
    return ReviewCycleGate(db)


def get_goal_engine(
    db: Session = Depends(get_db),
    directory: Directory = Depends(get_directory),
    notifier: Notifier = Depends(get_notifier),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cycles: ReviewCycleGate = Depends(get_cycle_gate),
) -> GoalLifecycle:
    return GoalLifecycle(db, directory, notifier, audit, cycles)


def get_review_engine(
    db: Session = Depends(get_db),
    directory: Directory = Depends(get_directory),
    notifier: Notifier = Depends(get_notifier),
    audit: AuditRecorder = Depends(get_audit_recorder),
    cycles: ReviewCycleGate = Depends(get_cycle_gate),
) -> ReviewLifecycle:
    return ReviewLifecycle(db, directory, notifier, audit, cycles)
