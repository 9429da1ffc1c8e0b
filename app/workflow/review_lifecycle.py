import logging
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from app.core.access import assert_review_manager, assert_review_owner
from app.core.errors import AlreadySubmittedError, InvalidInputError, InvalidStateError, NotFoundError
from app.core.optimistic_lock import assert_version_matches
from app.core.security import CallerContext
from app.models.goal import Goal, GoalPriority, GoalStatus
from app.models.notification import NotificationCategory
from app.models.performance_review import PerformanceReview, ReviewStatus
from app.models.review_goal_link import ReviewGoalLink
from app.workflow.base import LifecycleEngine, utcnow
from app.workflow.cycle_gate import ReviewCycleGate

logger = logging.getLogger(__name__)

REVIEW = "PerformanceReview"

DRAFT_EDITABLE_STATUSES = frozenset(
    {ReviewStatus.PENDING.value, ReviewStatus.SELF_ASSESSMENT_COMPLETED.value}
)


@dataclass
class ManagerAssessment:
    feedback: str
    rating: int
    rating_justification: str | None = None
    compensation_recommendations: str | None = None
    next_period_goals: str | None = None


def _check_rating(value: int | None, field: str) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise InvalidInputError(f"{field} must be between 1 and 5", details={field: value})


class ReviewLifecycle(LifecycleEngine):
    def __init__(self, db, directory, notifier, audit, cycles: ReviewCycleGate | None = None):
        super().__init__(db, directory, notifier, audit)
        self.cycles = cycles or ReviewCycleGate(db)

    # --- queries -------------------------------------------------------

    def get(self, review_id: int) -> PerformanceReview:
        review = self.db.get(PerformanceReview, review_id)
        if not review:
            raise NotFoundError("Performance review not found", details={"id": review_id})
        return review

    def find_for(self, cycle_id: int, user_id: int) -> PerformanceReview | None:
        return (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.cycle_id == cycle_id, PerformanceReview.user_id == user_id)
            .one_or_none()
        )

    def list_for_user(self, user_id: int) -> list[PerformanceReview]:
        return (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.user_id == user_id)
            .order_by(PerformanceReview.id.desc())
            .all()
        )

    def list_for_cycle(self, cycle_id: int) -> list[PerformanceReview]:
        return (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.cycle_id == cycle_id)
            .order_by(PerformanceReview.id.asc())
            .all()
        )

    def list_for_team(self, manager_id: int) -> list[PerformanceReview]:
        report_ids = [u.id for u in self.directory.direct_reports(manager_id)]
        if not report_ids:
            return []
        return (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.user_id.in_(report_ids))
            .order_by(PerformanceReview.id.desc())
            .all()
        )

    def list_all(self) -> list[PerformanceReview]:
        return self.db.query(PerformanceReview).order_by(PerformanceReview.id.desc()).all()

    def linked_goals(self, review_id: int) -> list[Goal]:
        self.get(review_id)
        return (
            self.db.query(Goal)
            .join(ReviewGoalLink, ReviewGoalLink.goal_id == Goal.id)
            .filter(ReviewGoalLink.review_id == review_id)
            .order_by(ReviewGoalLink.id.asc())
            .all()
        )

    def _lock(self, review_id: int) -> PerformanceReview:
        review = (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.id == review_id)
            .populate_existing()
            .with_for_update()
            .one_or_none()
        )
        if not review:
            raise NotFoundError("Performance review not found", details={"id": review_id})
        return review

    def _lock_for(self, cycle_id: int, user_id: int) -> PerformanceReview | None:
        return (
            self.db.query(PerformanceReview)
            .filter(PerformanceReview.cycle_id == cycle_id, PerformanceReview.user_id == user_id)
            .populate_existing()
            .with_for_update()
            .one_or_none()
        )

    def _link_completed_goals(self, review: PerformanceReview) -> int:
        """Link each COMPLETED goal of the reviewed employee once; returns how many were new."""
        completed_ids = [
            gid
            for (gid,) in self.db.query(Goal.id)
            .filter(Goal.assigned_to_id == review.user_id, Goal.status == GoalStatus.COMPLETED.value)
            .order_by(Goal.id.asc())
            .all()
        ]
        already = {
            gid
            for (gid,) in self.db.query(ReviewGoalLink.goal_id)
            .filter(ReviewGoalLink.review_id == review.id)
            .all()
        }
        now = utcnow()
        added = 0
        for goal_id in completed_ids:
            if goal_id in already:
                continue
            self.db.add(ReviewGoalLink(review_id=review.id, goal_id=goal_id, linked_at=now))
            added += 1
        return added

    # --- transitions ---------------------------------------------------

    def open_review(self, ctx: CallerContext, cycle_id: int) -> PerformanceReview:
        """Create-or-get the caller's PENDING review for a cycle."""
        employee = self.directory.get_active_user(ctx.user_id, label="Employee")
        cycle = self.cycles.get(cycle_id)

        existing = self.find_for(cycle.id, employee.id)
        if existing:
            return existing

        self.cycles.assert_accepting_submissions(cycle)
        review = PerformanceReview(cycle_id=cycle.id, user_id=employee.id, status=ReviewStatus.PENDING.value)
        self.db.add(review)
        try:
            self._commit()
        except IntegrityError:
            # Lost the insert race; the other writer's row is the one to return
            existing = self.find_for(cycle.id, employee.id)
            if existing is None:
                raise
            return existing
        logger.info("Review %s opened for user %s in cycle %s", review.id, employee.id, cycle.id)

        self._record(
            actor_id=ctx.user_id,
            action="REVIEW_OPENED",
            related_type=REVIEW,
            related_id=review.id,
            details=f"Performance review opened for cycle: {cycle.title}",
        )
        return review

    def submit_self_assessment(
        self,
        ctx: CallerContext,
        cycle_id: int | None,
        self_assessment: str,
        self_rating: int,
    ) -> PerformanceReview:
        _check_rating(self_rating, "self_rating")
        employee = self.directory.get_active_user(ctx.user_id, label="Employee")
        cycle = self.cycles.get(cycle_id) if cycle_id is not None else self.cycles.get_active()

        review = self._lock_for(cycle.id, employee.id)
        if review is not None and review.status != ReviewStatus.PENDING.value:
            raise AlreadySubmittedError(
                "Self-assessment already submitted for this review cycle",
                details={"review_id": review.id, "status": review.status},
            )
        self.cycles.assert_accepting_submissions(cycle)

        if review is None:
            review = PerformanceReview(cycle_id=cycle.id, user_id=employee.id)
            self.db.add(review)

        review.self_assessment = self_assessment
        review.self_rating = self_rating
        review.submitted_at = utcnow()
        review.status = ReviewStatus.SELF_ASSESSMENT_COMPLETED.value
        try:
            self.db.flush()
            linked = self._link_completed_goals(review)
            self._commit()
        except IntegrityError:
            self.db.rollback()
            raise AlreadySubmittedError("Self-assessment already submitted for this review cycle")
        logger.info(
            "Self-assessment submitted on review %s by user %s (%d goals linked)",
            review.id,
            employee.id,
            linked,
        )

        if employee.manager_id is not None:
            self._notify(
                recipient_id=employee.manager_id,
                category=NotificationCategory.SELF_ASSESSMENT_SUBMITTED.value,
                message=f"{employee.full_name} submitted a self-assessment for {cycle.title}",
                related_type=REVIEW,
                related_id=review.id,
                priority=GoalPriority.HIGH.value,
                action_required=True,
            )
        self._record(
            actor_id=ctx.user_id,
            action="SELF_ASSESSMENT_SUBMITTED",
            related_type=REVIEW,
            related_id=review.id,
            details=f"Self-assessment submitted for cycle: {cycle.title}",
            metadata={"linked_goals": linked},
        )
        return review

    def update_self_assessment_draft(
        self,
        ctx: CallerContext,
        review_id: int,
        self_assessment: str | None,
        self_rating: int | None,
        expected_version: int | None = None,
    ) -> PerformanceReview:
        _check_rating(self_rating, "self_rating")
        review = self._lock(review_id)
        assert_review_owner(ctx, review)
        assert_version_matches(current_version=review.version, if_match_version=expected_version)
        if review.status not in DRAFT_EDITABLE_STATUSES:
            raise InvalidStateError(
                "Self-assessment can no longer be edited",
                details={"review_id": review.id, "status": review.status},
            )

        # Omitted fields keep their stored value
        text = review.self_assessment if self_assessment is None else self_assessment
        rating = review.self_rating if self_rating is None else self_rating
        if review.status == ReviewStatus.SELF_ASSESSMENT_COMPLETED.value and not (
            (text or "").strip() and rating is not None
        ):
            raise InvalidInputError(
                "A submitted self-assessment needs both text and a rating",
                details={"review_id": review.id},
            )

        review.self_assessment = text
        review.self_rating = rating
        linked = 0
        if review.status == ReviewStatus.SELF_ASSESSMENT_COMPLETED.value:
            linked = self._link_completed_goals(review)
        self._commit()
        logger.info("Self-assessment draft on review %s updated by user %s", review.id, ctx.user_id)

        self._record(
            actor_id=ctx.user_id,
            action="SELF_ASSESSMENT_DRAFT_UPDATED",
            related_type=REVIEW,
            related_id=review.id,
            details="Self-assessment draft updated",
            metadata={"linked_goals": linked},
        )
        return review

    def submit_manager_review(
        self,
        ctx: CallerContext,
        review_id: int,
        assessment: ManagerAssessment,
        expected_version: int | None = None,
    ) -> PerformanceReview:
        _check_rating(assessment.rating, "manager_rating")
        review = self._lock(review_id)
        assert_review_manager(ctx, review)
        assert_version_matches(current_version=review.version, if_match_version=expected_version)
        if review.status != ReviewStatus.SELF_ASSESSMENT_COMPLETED.value:
            raise InvalidStateError(
                "Manager review requires a submitted self-assessment",
                details={"review_id": review.id, "status": review.status},
            )

        review.manager_feedback = assessment.feedback
        review.manager_rating = assessment.rating
        review.rating_justification = assessment.rating_justification
        review.compensation_recommendations = assessment.compensation_recommendations
        review.next_period_goals = assessment.next_period_goals
        review.reviewed_by_id = ctx.user_id
        review.review_completed_at = utcnow()
        review.status = ReviewStatus.COMPLETED.value
        self._commit()
        logger.info("Manager review completed on review %s by user %s", review.id, ctx.user_id)

        self._notify(
            recipient_id=review.user_id,
            category=NotificationCategory.PERFORMANCE_REVIEW_COMPLETED.value,
            message="Your manager has completed your performance review",
            related_type=REVIEW,
            related_id=review.id,
            priority=GoalPriority.HIGH.value,
        )
        self._record(
            actor_id=ctx.user_id,
            action="MANAGER_REVIEW_COMPLETED",
            related_type=REVIEW,
            related_id=review.id,
            details=f"Manager review completed with rating {assessment.rating}",
        )
        return review

    def acknowledge_review(
        self,
        ctx: CallerContext,
        review_id: int,
        response: str | None = None,
        expected_version: int | None = None,
    ) -> PerformanceReview:
        review = self._lock(review_id)
        assert_review_owner(ctx, review)
        assert_version_matches(current_version=review.version, if_match_version=expected_version)
        if review.status != ReviewStatus.COMPLETED.value:
            raise InvalidStateError(
                "Only completed reviews can be acknowledged",
                details={"review_id": review.id, "status": review.status},
            )

        review.acknowledged_by_id = ctx.user_id
        review.acknowledged_at = utcnow()
        review.employee_response = response
        review.status = ReviewStatus.COMPLETED_AND_ACKNOWLEDGED.value
        self._commit()
        logger.info("Review %s acknowledged by user %s", review.id, ctx.user_id)

        manager = self.directory.manager_of(review.user_id)
        if manager is not None:
            employee = self.directory.find_user(review.user_id)
            who = employee.full_name if employee else "An employee"
            self._notify(
                recipient_id=manager.id,
                category=NotificationCategory.REVIEW_ACKNOWLEDGED.value,
                message=f"{who} acknowledged their performance review",
                related_type=REVIEW,
                related_id=review.id,
            )
        self._record(
            actor_id=ctx.user_id,
            action="REVIEW_ACKNOWLEDGED",
            related_type=REVIEW,
            related_id=review.id,
            details="Performance review acknowledged",
        )
        return review
