from types import SimpleNamespace

import pytest

from app.core.errors import (
    AlreadySubmittedError,
    InvalidInputError,
    InvalidStateError,
    NoActiveCycleError,
    NotFoundError,
    UnauthorizedError,
)
from app.models.review_goal_link import ReviewGoalLink
from app.workflow.directory import Directory
from app.workflow.review_lifecycle import ManagerAssessment, ReviewLifecycle
from tests.helpers import (
    FailingNotifier,
    RecordingAuditRecorder,
    RecordingNotifier,
    create_cycle,
    create_goal,
    create_user,
    ctx,
)


@pytest.fixture()
def world(db_session):
    manager = create_user(db_session, "manager@local.test", "Maria Manager", role="MANAGER")
    other_manager = create_user(db_session, "other@local.test", "Omar Other", role="MANAGER")
    employee = create_user(db_session, "emp@local.test", "Eve Employee", manager=manager)
    loner = create_user(db_session, "loner@local.test", "Lee Loner")
    cycle = create_cycle(db_session)
    return SimpleNamespace(
        manager=manager, other_manager=other_manager, employee=employee, loner=loner, cycle=cycle
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def audit():
    return RecordingAuditRecorder()


@pytest.fixture()
def engine(db_session, notifier, audit):
    return ReviewLifecycle(db_session, Directory(db_session), notifier, audit)


def _links(db_session, review_id: int) -> list[int]:
    return [
        link.goal_id
        for link in db_session.query(ReviewGoalLink).filter(ReviewGoalLink.review_id == review_id).all()
    ]


def _assessment(rating: int = 4) -> ManagerAssessment:
    return ManagerAssessment(
        feedback="Consistently strong delivery",
        rating=rating,
        rating_justification="Shipped both major goals",
        compensation_recommendations="Merit increase",
        next_period_goals="Lead the Q3 migration",
    )


def test_scenario_full_review_cycle(engine, world, db_session, notifier, audit):
    done = create_goal(db_session, world.employee, world.manager, status="COMPLETED")
    create_goal(db_session, world.employee, world.manager, title="Still going", status="IN_PROGRESS")

    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "Hit my targets", 4)
    assert review.status == "SELF_ASSESSMENT_COMPLETED"
    assert review.submitted_at is not None
    assert _links(db_session, review.id) == [done.id]

    review = engine.submit_manager_review(ctx(world.manager), review.id, _assessment(4))
    assert review.status == "COMPLETED"
    assert review.reviewed_by_id == world.manager.id
    assert review.review_completed_at is not None

    review = engine.acknowledge_review(ctx(world.employee), review.id, "Thanks for the feedback")
    assert review.status == "COMPLETED_AND_ACKNOWLEDGED"
    assert review.acknowledged_by_id == world.employee.id
    assert review.employee_response == "Thanks for the feedback"

    assert notifier.categories() == [
        "SELF_ASSESSMENT_SUBMITTED",
        "PERFORMANCE_REVIEW_COMPLETED",
        "REVIEW_ACKNOWLEDGED",
    ]
    assert notifier.sent[0]["recipient_id"] == world.manager.id
    assert notifier.sent[0]["priority"] == "HIGH"
    assert notifier.sent[0]["action_required"] is True
    assert notifier.sent[1]["recipient_id"] == world.employee.id
    assert notifier.sent[1]["action_required"] is False
    assert notifier.sent[2]["recipient_id"] == world.manager.id
    assert audit.actions() == [
        "SELF_ASSESSMENT_SUBMITTED",
        "MANAGER_REVIEW_COMPLETED",
        "REVIEW_ACKNOWLEDGED",
    ]

    # Terminal: nothing else applies
    with pytest.raises(InvalidStateError):
        engine.acknowledge_review(ctx(world.employee), review.id, "again")
    with pytest.raises(InvalidStateError):
        engine.submit_manager_review(ctx(world.manager), review.id, _assessment())
    with pytest.raises(InvalidStateError):
        engine.update_self_assessment_draft(ctx(world.employee), review.id, "edit", 5)


def test_self_assessment_defaults_to_active_cycle(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), None, "Solid year", 3)
    assert review.cycle_id == world.cycle.id


def test_active_cycle_is_latest_start_date(engine, world, db_session):
    from datetime import date

    newer = create_cycle(
        db_session, title="Mid-year", start_date=date(2026, 6, 1), end_date=date(2026, 12, 31)
    )
    review = engine.submit_self_assessment(ctx(world.employee), None, "Solid half", 3)
    assert review.cycle_id == newer.id


def test_self_assessment_without_active_cycle(db_session, notifier, audit):
    employee = create_user(db_session, "solo@local.test", "Solo")
    create_cycle(db_session, status="CLOSED")
    engine = ReviewLifecycle(db_session, Directory(db_session), notifier, audit)

    with pytest.raises(NoActiveCycleError):
        engine.submit_self_assessment(ctx(employee), None, "text", 3)


def test_self_assessment_for_unknown_cycle(engine, world):
    with pytest.raises(NotFoundError):
        engine.submit_self_assessment(ctx(world.employee), 999, "text", 3)


def test_self_assessment_into_closed_cycle_is_rejected(engine, world, db_session):
    closed = create_cycle(db_session, title="Last year", status="CLOSED")
    with pytest.raises(InvalidStateError):
        engine.submit_self_assessment(ctx(world.employee), closed.id, "text", 3)


@pytest.mark.parametrize("rating", [0, 6, -1])
def test_self_rating_out_of_range(engine, world, rating):
    with pytest.raises(InvalidInputError):
        engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", rating)


def test_duplicate_self_assessment_fails(engine, world, audit):
    engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "first", 4)

    with pytest.raises(AlreadySubmittedError):
        engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "second", 5)

    assert audit.actions() == ["SELF_ASSESSMENT_SUBMITTED"]


def test_open_review_then_submit_reuses_pending_row(engine, world):
    opened = engine.open_review(ctx(world.employee), world.cycle.id)
    assert opened.status == "PENDING"
    assert engine.open_review(ctx(world.employee), world.cycle.id).id == opened.id

    engine.update_self_assessment_draft(ctx(world.employee), opened.id, "work in progress", 3)
    review = engine.get(opened.id)
    assert review.status == "PENDING"
    assert review.self_assessment == "work in progress"

    submitted = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "final text", 4)
    assert submitted.id == opened.id
    assert submitted.status == "SELF_ASSESSMENT_COMPLETED"


def test_draft_update_only_by_owner(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    with pytest.raises(UnauthorizedError):
        engine.update_self_assessment_draft(ctx(world.manager), review.id, "edited", 5)


def test_draft_update_after_submission_keeps_status_and_does_not_notify(engine, world, notifier, audit):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    sent_before = len(notifier.sent)

    review = engine.update_self_assessment_draft(ctx(world.employee), review.id, "better text", 5)

    assert review.status == "SELF_ASSESSMENT_COMPLETED"
    assert review.self_rating == 5
    assert len(notifier.sent) == sent_before
    assert audit.actions()[-1] == "SELF_ASSESSMENT_DRAFT_UPDATED"


def test_partial_draft_update_keeps_submitted_fields(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "solid year", 4)

    review = engine.update_self_assessment_draft(ctx(world.employee), review.id, None, 5)
    assert review.self_assessment == "solid year"
    assert review.self_rating == 5

    review = engine.update_self_assessment_draft(ctx(world.employee), review.id, None, None)
    assert review.self_assessment == "solid year"
    assert review.self_rating == 5


def test_draft_update_cannot_blank_a_submitted_assessment(engine, world, audit):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "solid year", 4)

    with pytest.raises(InvalidInputError):
        engine.update_self_assessment_draft(ctx(world.employee), review.id, "   ", None)

    review = engine.get(review.id)
    assert review.self_assessment == "solid year"
    assert audit.actions() == ["SELF_ASSESSMENT_SUBMITTED"]


def test_goal_links_are_idempotent(engine, world, db_session):
    first = create_goal(db_session, world.employee, world.manager, title="First", status="COMPLETED")
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    assert _links(db_session, review.id) == [first.id]

    second = create_goal(db_session, world.employee, world.manager, title="Second", status="COMPLETED")
    engine.update_self_assessment_draft(ctx(world.employee), review.id, "text v2", 4)
    engine.update_self_assessment_draft(ctx(world.employee), review.id, "text v3", 4)

    assert sorted(_links(db_session, review.id)) == sorted([first.id, second.id])
    assert [g.id for g in engine.linked_goals(review.id)] == [first.id, second.id]


def test_manager_review_requires_submitted_self_assessment(engine, world):
    review = engine.open_review(ctx(world.employee), world.cycle.id)
    with pytest.raises(InvalidStateError):
        engine.submit_manager_review(ctx(world.manager), review.id, _assessment())


def test_manager_review_only_by_employees_manager(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)

    with pytest.raises(UnauthorizedError):
        engine.submit_manager_review(ctx(world.other_manager), review.id, _assessment())
    with pytest.raises(UnauthorizedError):
        engine.submit_manager_review(ctx(world.employee), review.id, _assessment())


def test_manager_rating_out_of_range(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    with pytest.raises(InvalidInputError):
        engine.submit_manager_review(ctx(world.manager), review.id, _assessment(rating=7))


def test_acknowledge_requires_completed_review(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    with pytest.raises(InvalidStateError):
        engine.acknowledge_review(ctx(world.employee), review.id, "ok")


def test_acknowledge_only_by_reviewed_employee(engine, world):
    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)
    engine.submit_manager_review(ctx(world.manager), review.id, _assessment())
    with pytest.raises(UnauthorizedError):
        engine.acknowledge_review(ctx(world.manager), review.id, "ok")


def test_employee_without_manager_gets_no_notification(engine, world, notifier, audit):
    review = engine.submit_self_assessment(ctx(world.loner), world.cycle.id, "text", 3)

    assert review.status == "SELF_ASSESSMENT_COMPLETED"
    assert notifier.sent == []
    assert audit.actions() == ["SELF_ASSESSMENT_SUBMITTED"]


def test_failing_notifier_does_not_undo_submission(db_session, world, audit):
    engine = ReviewLifecycle(db_session, Directory(db_session), FailingNotifier(), audit)

    review = engine.submit_self_assessment(ctx(world.employee), world.cycle.id, "text", 4)

    db_session.refresh(review)
    assert review.status == "SELF_ASSESSMENT_COMPLETED"
    assert audit.actions() == ["SELF_ASSESSMENT_SUBMITTED"]
