import logging
from dataclasses import dataclass
from datetime import date

from app.core.access import assert_goal_manager, assert_goal_owner, can_delete_goal
from app.core.errors import InvalidInputError, InvalidStateError, NotFoundError, UnauthorizedError
from app.core.optimistic_lock import assert_version_matches
from app.core.security import CallerContext
from app.models.feedback import Feedback
from app.models.goal import (
    CompletionApprovalStatus,
    EvidenceVerificationStatus,
    Goal,
    GoalCategory,
    GoalPriority,
    GoalStatus,
)
from app.models.goal_completion_approval import CompletionDecision, GoalCompletionApproval
from app.models.goal_progress_note import GoalProgressNote
from app.models.notification import NotificationCategory
from app.workflow.base import LifecycleEngine, utcnow
from app.workflow.cycle_gate import ReviewCycleGate

logger = logging.getLogger(__name__)

GOAL = "Goal"


@dataclass
class GoalDraft:
    """Editable fields of a goal, shared by create and update."""

    title: str
    start_date: date
    end_date: date
    description: str | None = None
    category: GoalCategory = GoalCategory.OTHER
    priority: GoalPriority = GoalPriority.MEDIUM


@dataclass
class CompletionEvidence:
    link: str | None = None
    description: str | None = None
    access_notes: str | None = None
    completion_notes: str | None = None


def _validate_dates(draft: GoalDraft) -> None:
    if draft.end_date < draft.start_date:
        raise InvalidInputError(
            "End date must be on or after start date",
            details={"start_date": draft.start_date.isoformat(), "end_date": draft.end_date.isoformat()},
        )


def _require_not_terminal(goal: Goal, action: str) -> None:
    if goal.is_terminal:
        raise InvalidStateError(
            f"Cannot {action} a goal that is {goal.status}",
            details={"goal_id": goal.id, "status": goal.status},
        )


def _require_status(goal: Goal, expected: GoalStatus, message: str) -> None:
    if goal.status != expected.value:
        raise InvalidStateError(message, details={"goal_id": goal.id, "status": goal.status})


class GoalLifecycle(LifecycleEngine):
    def __init__(self, db, directory, notifier, audit, cycles: ReviewCycleGate | None = None):
        super().__init__(db, directory, notifier, audit)
        self.cycles = cycles or ReviewCycleGate(db)

    # --- queries -------------------------------------------------------

    def get(self, goal_id: int) -> Goal:
        goal = self.db.get(Goal, goal_id)
        if not goal:
            raise NotFoundError("Goal not found", details={"id": goal_id})
        return goal

    def list_for_owner(self, user_id: int, status: GoalStatus | None = None) -> list[Goal]:
        q = self.db.query(Goal).filter(Goal.assigned_to_id == user_id)
        if status is not None:
            q = q.filter(Goal.status == status.value)
        return q.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def list_for_manager(self, manager_id: int, status: GoalStatus | None = None) -> list[Goal]:
        q = self.db.query(Goal).filter(Goal.assigned_manager_id == manager_id)
        if status is not None:
            q = q.filter(Goal.status == status.value)
        return q.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def list_all(self, status: GoalStatus | None = None) -> list[Goal]:
        q = self.db.query(Goal)
        if status is not None:
            q = q.filter(Goal.status == status.value)
        return q.order_by(Goal.created_at.desc(), Goal.id.desc()).all()

    def progress_notes(self, goal_id: int) -> list[GoalProgressNote]:
        self.get(goal_id)
        return (
            self.db.query(GoalProgressNote)
            .filter(GoalProgressNote.goal_id == goal_id)
            .order_by(GoalProgressNote.id.asc())
            .all()
        )

    def completion_history(self, goal_id: int) -> list[GoalCompletionApproval]:
        self.get(goal_id)
        return (
            self.db.query(GoalCompletionApproval)
            .filter(GoalCompletionApproval.goal_id == goal_id)
            .order_by(GoalCompletionApproval.id.asc())
            .all()
        )

    def _lock(self, goal_id: int) -> Goal:
        goal = (
            self.db.query(Goal)
            .filter(Goal.id == goal_id)
            .populate_existing()
            .with_for_update()
            .one_or_none()
        )
        if not goal:
            raise NotFoundError("Goal not found", details={"id": goal_id})
        return goal

    # --- transitions ---------------------------------------------------

    def create(self, ctx: CallerContext, draft: GoalDraft, manager_id: int) -> Goal:
        _validate_dates(draft)
        employee = self.directory.get_active_user(ctx.user_id, label="Employee")
        manager = self.directory.get_active_user(manager_id, label="Manager")

        goal = Goal(
            title=draft.title,
            description=draft.description,
            category=GoalCategory(draft.category).value,
            priority=GoalPriority(draft.priority).value,
            start_date=draft.start_date,
            end_date=draft.end_date,
            assigned_to_id=employee.id,
            assigned_manager_id=manager.id,
            status=GoalStatus.PENDING.value,
            change_requested=False,
        )
        self.db.add(goal)
        self._commit()
        logger.info("Goal %s created by user %s for manager %s", goal.id, employee.id, manager.id)

        self._notify(
            recipient_id=manager.id,
            category=NotificationCategory.GOAL_SUBMITTED.value,
            message=f"{employee.full_name} submitted a new goal for approval: {goal.title}",
            related_type=GOAL,
            related_id=goal.id,
            priority=goal.priority,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_CREATED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal created: {goal.title}",
        )
        return goal

    def approve(self, ctx: CallerContext, goal_id: int, expected_version: int | None = None) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_status(goal, GoalStatus.PENDING, "Only pending goals can be approved")

        now = utcnow()
        goal.status = GoalStatus.IN_PROGRESS.value
        goal.approved_by_id = ctx.user_id
        goal.approved_at = now
        goal.change_requested = False
        goal.last_reviewed_by_id = ctx.user_id
        goal.last_reviewed_at = now
        self._commit()
        logger.info("Goal %s approved by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_to_id,
            category=NotificationCategory.GOAL_APPROVED.value,
            message=f"Your goal '{goal.title}' has been approved",
            related_type=GOAL,
            related_id=goal.id,
            priority=goal.priority,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_APPROVED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal approved: {goal.title}",
        )
        return goal

    def request_changes(
        self, ctx: CallerContext, goal_id: int, comments: str, expected_version: int | None = None
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        # Allowed from any live status, not only PENDING
        _require_not_terminal(goal, "request changes on")

        now = utcnow()
        goal.change_requested = True
        goal.last_reviewed_by_id = ctx.user_id
        goal.last_reviewed_at = now
        self.db.add(
            Feedback(
                goal_id=goal.id,
                given_by_id=ctx.user_id,
                comments=comments,
                feedback_type="CHANGE_REQUEST",
                given_at=now,
            )
        )
        self._commit()
        logger.info("Changes requested on goal %s by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_to_id,
            category=NotificationCategory.GOAL_CHANGE_REQUESTED.value,
            message=f"Changes requested for goal '{goal.title}': {comments}",
            related_type=GOAL,
            related_id=goal.id,
            priority=goal.priority,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_CHANGE_REQUESTED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Changes requested: {comments}",
        )
        return goal

    def update(
        self, ctx: CallerContext, goal_id: int, draft: GoalDraft, expected_version: int | None = None
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_owner(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_not_terminal(goal, "update")
        if not goal.change_requested:
            raise InvalidStateError(
                "Goal can only be updated after the manager requests changes",
                details={"goal_id": goal.id},
            )
        _validate_dates(draft)

        goal.title = draft.title
        goal.description = draft.description
        goal.category = GoalCategory(draft.category).value
        goal.priority = GoalPriority(draft.priority).value
        goal.start_date = draft.start_date
        goal.end_date = draft.end_date
        goal.change_requested = False
        goal.resubmitted_at = utcnow()
        self._commit()
        logger.info("Goal %s resubmitted by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_manager_id,
            category=NotificationCategory.GOAL_RESUBMITTED.value,
            message=f"Goal '{goal.title}' has been updated and resubmitted for review",
            related_type=GOAL,
            related_id=goal.id,
            priority=goal.priority,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_UPDATED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal updated and resubmitted: {goal.title}",
        )
        return goal

    def submit_completion(
        self,
        ctx: CallerContext,
        goal_id: int,
        evidence: CompletionEvidence,
        expected_version: int | None = None,
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_owner(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)

        resubmission = (
            goal.status == GoalStatus.PENDING_COMPLETION_APPROVAL.value
            and goal.completion_approval_status == CompletionApprovalStatus.ADDITIONAL_EVIDENCE_REQUIRED.value
        )
        if goal.status != GoalStatus.IN_PROGRESS.value and not resubmission:
            raise InvalidStateError(
                "Only in-progress goals can be submitted for completion",
                details={"goal_id": goal.id, "status": goal.status},
            )
        if self.cycles.evidence_required() and not (evidence.link or "").strip():
            raise InvalidInputError("Evidence link is required to submit completion")

        goal.status = GoalStatus.PENDING_COMPLETION_APPROVAL.value
        goal.evidence_link = evidence.link
        goal.evidence_description = evidence.description
        goal.evidence_access_notes = evidence.access_notes
        goal.completion_notes = evidence.completion_notes
        goal.completion_submitted_at = utcnow()
        goal.evidence_verification_status = EvidenceVerificationStatus.NOT_VERIFIED.value
        goal.evidence_verification_notes = None
        goal.evidence_verified_by_id = None
        goal.evidence_verified_at = None
        goal.completion_approval_status = CompletionApprovalStatus.PENDING.value
        self._commit()
        logger.info(
            "Goal %s submitted for completion by user %s (resubmission=%s)", goal.id, ctx.user_id, resubmission
        )

        employee = self.directory.find_user(goal.assigned_to_id)
        who = employee.full_name if employee else "An employee"
        self._notify(
            recipient_id=goal.assigned_manager_id,
            category=NotificationCategory.GOAL_COMPLETION_SUBMITTED.value,
            message=f"{who} submitted goal '{goal.title}' for completion approval",
            related_type=GOAL,
            related_id=goal.id,
            priority=GoalPriority.HIGH.value,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_COMPLETION_SUBMITTED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal submitted for completion with evidence: {goal.evidence_link or '-'}",
        )
        return goal

    def verify_evidence(
        self,
        ctx: CallerContext,
        goal_id: int,
        status: EvidenceVerificationStatus,
        notes: str | None = None,
        expected_version: int | None = None,
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_not_terminal(goal, "verify evidence on")
        if not goal.has_evidence:
            raise InvalidStateError("Goal has no submitted evidence", details={"goal_id": goal.id})

        goal.evidence_verification_status = status.value
        goal.evidence_verification_notes = notes
        goal.evidence_verified_by_id = ctx.user_id
        goal.evidence_verified_at = utcnow()
        self._commit()
        logger.info("Evidence on goal %s marked %s by user %s", goal.id, status.value, ctx.user_id)

        self._record(
            actor_id=ctx.user_id,
            action="EVIDENCE_VERIFIED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Evidence verification status: {status.value}",
        )
        return goal

    def approve_completion(
        self,
        ctx: CallerContext,
        goal_id: int,
        comments: str | None = None,
        expected_version: int | None = None,
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_status(
            goal, GoalStatus.PENDING_COMPLETION_APPROVAL, "Goal is not pending completion approval"
        )

        now = utcnow()
        goal.status = GoalStatus.COMPLETED.value
        goal.completion_approval_status = CompletionApprovalStatus.APPROVED.value
        goal.completion_approved_by_id = ctx.user_id
        goal.completion_approved_at = now
        goal.final_completion_at = now
        goal.manager_completion_comments = comments
        goal.evidence_verification_status = EvidenceVerificationStatus.VERIFIED.value
        goal.evidence_verified_by_id = ctx.user_id
        goal.evidence_verified_at = now
        self.db.add(
            GoalCompletionApproval(
                goal_id=goal.id,
                decided_by_id=ctx.user_id,
                decision=CompletionDecision.APPROVED.value,
                decided_at=now,
                manager_comments=comments,
                evidence_verified=True,
                decision_rationale="Evidence verified and goal completion approved",
            )
        )
        self._commit()
        logger.info("Goal %s completed, approved by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_to_id,
            category=NotificationCategory.GOAL_COMPLETION_APPROVED.value,
            message=f"Congratulations! Your goal '{goal.title}' has been marked as completed",
            related_type=GOAL,
            related_id=goal.id,
            priority=GoalPriority.HIGH.value,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_COMPLETION_APPROVED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal completion approved: {goal.title}",
        )
        return goal

    def request_additional_evidence(
        self, ctx: CallerContext, goal_id: int, reason: str, expected_version: int | None = None
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_status(
            goal, GoalStatus.PENDING_COMPLETION_APPROVAL, "Goal is not pending completion approval"
        )

        goal.completion_approval_status = CompletionApprovalStatus.ADDITIONAL_EVIDENCE_REQUIRED.value
        goal.evidence_verification_status = EvidenceVerificationStatus.NEEDS_ADDITIONAL_LINK.value
        goal.evidence_verification_notes = reason
        goal.evidence_verified_by_id = ctx.user_id
        goal.evidence_verified_at = utcnow()
        self._commit()
        logger.info("Additional evidence requested on goal %s by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_to_id,
            category=NotificationCategory.ADDITIONAL_EVIDENCE_REQUIRED.value,
            message=f"Additional evidence needed for goal '{goal.title}': {reason}",
            related_type=GOAL,
            related_id=goal.id,
            priority=goal.priority,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="ADDITIONAL_EVIDENCE_REQUESTED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Additional evidence requested: {reason}",
        )
        return goal

    def reject_completion(
        self, ctx: CallerContext, goal_id: int, reason: str, expected_version: int | None = None
    ) -> Goal:
        goal = self._lock(goal_id)
        assert_goal_manager(ctx, goal)
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        _require_status(
            goal, GoalStatus.PENDING_COMPLETION_APPROVAL, "Goal is not pending completion approval"
        )

        now = utcnow()
        goal.status = GoalStatus.IN_PROGRESS.value
        goal.completion_approval_status = CompletionApprovalStatus.REJECTED.value
        goal.manager_completion_comments = reason
        goal.completion_approved_by_id = ctx.user_id
        goal.completion_approved_at = now
        self.db.add(
            GoalCompletionApproval(
                goal_id=goal.id,
                decided_by_id=ctx.user_id,
                decision=CompletionDecision.REJECTED.value,
                decided_at=now,
                manager_comments=reason,
                evidence_verified=False,
                decision_rationale=reason,
            )
        )
        self._commit()
        logger.info("Completion of goal %s rejected by user %s", goal.id, ctx.user_id)

        self._notify(
            recipient_id=goal.assigned_to_id,
            category=NotificationCategory.GOAL_COMPLETION_REJECTED.value,
            message=f"Completion of goal '{goal.title}' was not approved: {reason}",
            related_type=GOAL,
            related_id=goal.id,
            priority=GoalPriority.HIGH.value,
            action_required=True,
        )
        self._record(
            actor_id=ctx.user_id,
            action="GOAL_COMPLETION_REJECTED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal completion rejected: {reason}",
        )
        return goal

    def add_progress_note(self, ctx: CallerContext, goal_id: int, note: str) -> GoalProgressNote:
        goal = self._lock(goal_id)
        assert_goal_owner(ctx, goal)
        _require_not_terminal(goal, "add progress to")
        if not note or not note.strip():
            raise InvalidInputError("Progress note must not be blank")

        entry = GoalProgressNote(
            goal_id=goal.id,
            author_user_id=ctx.user_id,
            note=note.strip(),
            recorded_at=utcnow(),
        )
        self.db.add(entry)
        self._commit()
        logger.info("Progress note %s added to goal %s", entry.id, goal.id)

        self._record(
            actor_id=ctx.user_id,
            action="PROGRESS_ADDED",
            related_type=GOAL,
            related_id=goal.id,
            details="Progress note added",
        )
        return entry

    def delete(self, ctx: CallerContext, goal_id: int, expected_version: int | None = None) -> Goal:
        goal = self._lock(goal_id)
        if not can_delete_goal(ctx, goal):
            raise UnauthorizedError("You can only delete your own goals")
        assert_version_matches(current_version=goal.version, if_match_version=expected_version)
        if goal.status == GoalStatus.COMPLETED.value:
            raise InvalidStateError("Completed goals are finalized and cannot be deleted")
        if goal.status == GoalStatus.REJECTED.value:
            raise InvalidStateError("Goal is already deleted")

        goal.status = GoalStatus.REJECTED.value
        self._commit()
        logger.info("Goal %s soft-deleted by user %s", goal.id, ctx.user_id)

        self._record(
            actor_id=ctx.user_id,
            action="GOAL_DELETED",
            related_type=GOAL,
            related_id=goal.id,
            details=f"Goal deleted: {goal.title}",
        )
        return goal
