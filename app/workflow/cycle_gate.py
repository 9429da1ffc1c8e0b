from sqlalchemy.orm import Session

from app.core.errors import InvalidStateError, NoActiveCycleError, NotFoundError
from app.models.review_cycle import CycleStatus, ReviewCycle


class ReviewCycleGate:
    """Answers which review cycle is open for submissions."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, cycle_id: int) -> ReviewCycle:
        cycle = self.db.get(ReviewCycle, cycle_id)
        if not cycle:
            raise NotFoundError("Review cycle not found", details={"id": cycle_id})
        return cycle

    def find_active(self) -> ReviewCycle | None:
        # Latest start date wins if more than one row is ACTIVE
        return (
            self.db.query(ReviewCycle)
            .filter(ReviewCycle.status == CycleStatus.ACTIVE.value)
            .order_by(ReviewCycle.start_date.desc(), ReviewCycle.id.desc())
            .first()
        )

    def get_active(self) -> ReviewCycle:
        cycle = self.find_active()
        if not cycle:
            raise NoActiveCycleError("No active review cycle found")
        return cycle

    def assert_accepting_submissions(self, cycle: ReviewCycle) -> None:
        if cycle.status != CycleStatus.ACTIVE.value:
            raise InvalidStateError(
                "Review cycle is closed for submissions",
                details={"cycle_id": cycle.id, "status": cycle.status},
            )

    def assert_can_activate(self, *, exclude_cycle_id: int | None = None) -> None:
        q = self.db.query(ReviewCycle).filter(ReviewCycle.status == CycleStatus.ACTIVE.value)
        if exclude_cycle_id is not None:
            q = q.filter(ReviewCycle.id != exclude_cycle_id)
        other = q.first()
        if other:
            raise InvalidStateError(
                "Another review cycle is already active",
                details={"active_cycle_id": other.id},
            )

    def evidence_required(self) -> bool:
        """Completion evidence is mandatory unless the active cycle waives it."""
        cycle = self.find_active()
        return True if cycle is None else bool(cycle.evidence_required)
