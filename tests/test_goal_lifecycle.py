from datetime import date
from types import SimpleNamespace

import pytest

from app.core.errors import (
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StaleVersionError,
    UnauthorizedError,
)
from app.models.feedback import Feedback
from app.models.goal import EvidenceVerificationStatus, Goal, GoalPriority, GoalStatus
from app.models.goal_completion_approval import GoalCompletionApproval
from app.workflow.directory import Directory
from app.workflow.goal_lifecycle import CompletionEvidence, GoalDraft, GoalLifecycle
from tests.helpers import (
    FailingNotifier,
    RecordingAuditRecorder,
    RecordingNotifier,
    create_cycle,
    create_goal,
    create_user,
    ctx,
)

EVIDENCE = CompletionEvidence(link="https://example.test/demo", description="Release notes")


@pytest.fixture()
def world(db_session):
    manager = create_user(db_session, "manager@local.test", "Maria Manager", role="MANAGER")
    other_manager = create_user(db_session, "other@local.test", "Omar Other", role="MANAGER")
    employee = create_user(db_session, "emp@local.test", "Eve Employee", manager=manager)
    peer = create_user(db_session, "peer@local.test", "Pat Peer", manager=manager)
    admin = create_user(db_session, "admin@local.test", "Ada Admin", role="ADMIN")
    return SimpleNamespace(
        manager=manager, other_manager=other_manager, employee=employee, peer=peer, admin=admin
    )


@pytest.fixture()
def notifier():
    return RecordingNotifier()


@pytest.fixture()
def audit():
    return RecordingAuditRecorder()


@pytest.fixture()
def engine(db_session, notifier, audit):
    return GoalLifecycle(db_session, Directory(db_session), notifier, audit)


def _draft(**overrides) -> GoalDraft:
    values = dict(
        title="Ship the reporting module",
        start_date=date(2026, 1, 1),
        end_date=date(2026, 3, 1),
        priority=GoalPriority.HIGH,
    )
    values.update(overrides)
    return GoalDraft(**values)


def test_create_goal_is_pending_and_notifies_manager(engine, world, notifier, audit):
    goal = engine.create(ctx(world.employee), _draft(), world.manager.id)

    assert goal.id is not None
    assert goal.status == "PENDING"
    assert goal.change_requested is False
    assert goal.assigned_to_id == world.employee.id
    assert goal.assigned_manager_id == world.manager.id

    assert len(notifier.sent) == 1
    sent = notifier.sent[0]
    assert sent["recipient_id"] == world.manager.id
    assert sent["category"] == "GOAL_SUBMITTED"
    assert sent["priority"] == "HIGH"
    assert sent["action_required"] is True
    assert audit.actions() == ["GOAL_CREATED"]


def test_create_with_end_before_start_persists_nothing(engine, world, db_session, notifier, audit):
    with pytest.raises(InvalidInputError):
        engine.create(
            ctx(world.employee),
            _draft(start_date=date(2026, 3, 1), end_date=date(2026, 1, 1)),
            world.manager.id,
        )

    assert db_session.query(Goal).count() == 0
    assert notifier.sent == []
    assert audit.records == []


def test_create_with_unknown_manager_fails_not_found(engine, world, db_session):
    with pytest.raises(NotFoundError):
        engine.create(ctx(world.employee), _draft(), 9999)
    assert db_session.query(Goal).count() == 0


def test_approve_moves_to_in_progress(engine, world, notifier):
    goal = create_goal(engine.db, world.employee, world.manager, change_requested=True)

    goal = engine.approve(ctx(world.manager), goal.id)

    assert goal.status == "IN_PROGRESS"
    assert goal.approved_by_id == world.manager.id
    assert goal.approved_at is not None
    assert goal.change_requested is False
    assert notifier.sent[-1]["recipient_id"] == world.employee.id
    assert notifier.sent[-1]["category"] == "GOAL_APPROVED"


def test_approve_by_non_assigned_manager_is_unauthorized(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager)

    with pytest.raises(UnauthorizedError):
        engine.approve(ctx(world.other_manager), goal.id)

    db_session.refresh(goal)
    assert goal.status == "PENDING"


MANAGER_OPERATIONS = {
    "approve": ("PENDING", lambda e, c, gid: e.approve(c, gid)),
    "request_changes": ("PENDING", lambda e, c, gid: e.request_changes(c, gid, "narrow the scope")),
    "approve_completion": (
        "PENDING_COMPLETION_APPROVAL",
        lambda e, c, gid: e.approve_completion(c, gid, "well done"),
    ),
    "reject_completion": (
        "PENDING_COMPLETION_APPROVAL",
        lambda e, c, gid: e.reject_completion(c, gid, "demo is broken"),
    ),
    "verify_evidence": (
        "PENDING_COMPLETION_APPROVAL",
        lambda e, c, gid: e.verify_evidence(c, gid, EvidenceVerificationStatus.VERIFIED, "checked"),
    ),
}


def _goal_state(goal: Goal) -> tuple:
    return (
        goal.status,
        goal.change_requested,
        goal.approved_by_id,
        goal.completion_approval_status,
        goal.evidence_verification_status,
        goal.evidence_verified_by_id,
        goal.version,
    )


@pytest.mark.parametrize("operation", sorted(MANAGER_OPERATIONS))
def test_manager_operations_only_for_assigned_manager(engine, world, db_session, notifier, audit, operation):
    status, op = MANAGER_OPERATIONS[operation]
    goal = create_goal(db_session, world.employee, world.manager, status=status)
    before = _goal_state(goal)

    with pytest.raises(UnauthorizedError):
        op(engine, ctx(world.other_manager), goal.id)

    db_session.refresh(goal)
    assert _goal_state(goal) == before
    assert db_session.query(Feedback).count() == 0
    assert db_session.query(GoalCompletionApproval).count() == 0
    assert notifier.sent == []
    assert audit.records == []

    op(engine, ctx(world.manager), goal.id)

    db_session.refresh(goal)
    assert _goal_state(goal) != before
    assert len(audit.records) == 1


def test_approve_requires_pending(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")
    with pytest.raises(InvalidStateError):
        engine.approve(ctx(world.manager), goal.id)


def test_unknown_goal_fails_not_found(engine, world):
    with pytest.raises(NotFoundError):
        engine.approve(ctx(world.manager), 4242)


def test_request_changes_sets_flag_and_records_feedback(engine, world, db_session, notifier, audit):
    goal = create_goal(db_session, world.employee, world.manager)

    goal = engine.request_changes(ctx(world.manager), goal.id, "clarify timeline")

    assert goal.change_requested is True
    assert goal.last_reviewed_by_id == world.manager.id
    fb = db_session.query(Feedback).filter(Feedback.goal_id == goal.id).one()
    assert fb.comments == "clarify timeline"
    assert fb.feedback_type == "CHANGE_REQUEST"
    assert notifier.categories() == ["GOAL_CHANGE_REQUESTED"]
    assert audit.actions() == ["GOAL_CHANGE_REQUESTED"]


def test_request_changes_is_allowed_on_in_progress_goal(engine, world, db_session):
    # Not limited to PENDING goals; any live status qualifies
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    goal = engine.request_changes(ctx(world.manager), goal.id, "narrow the scope")

    assert goal.status == "IN_PROGRESS"
    assert goal.change_requested is True


def test_update_requires_change_request(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager)
    with pytest.raises(InvalidStateError):
        engine.update(ctx(world.employee), goal.id, _draft(title="Rewritten"))


def test_update_by_non_owner_is_unauthorized(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, change_requested=True)
    with pytest.raises(UnauthorizedError):
        engine.update(ctx(world.peer), goal.id, _draft(title="Hijacked"))


def test_update_rejects_invalid_dates_and_keeps_goal(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, change_requested=True)

    with pytest.raises(InvalidInputError):
        engine.update(
            ctx(world.employee),
            goal.id,
            _draft(start_date=date(2026, 5, 1), end_date=date(2026, 4, 1)),
        )

    db_session.refresh(goal)
    assert goal.change_requested is True
    assert goal.start_date == date(2026, 1, 1)


def test_scenario_change_request_then_resubmit_then_approve(engine, world, notifier, audit):
    goal = engine.create(ctx(world.employee), _draft(), world.manager.id)

    engine.request_changes(ctx(world.manager), goal.id, "clarify timeline")
    goal = engine.update(
        ctx(world.employee), goal.id, _draft(start_date=date(2026, 1, 15), end_date=date(2026, 4, 1))
    )
    assert goal.change_requested is False
    assert goal.status == "PENDING"
    assert goal.resubmitted_at is not None
    assert goal.end_date == date(2026, 4, 1)

    goal = engine.approve(ctx(world.manager), goal.id)
    assert goal.status == "IN_PROGRESS"

    assert notifier.categories() == [
        "GOAL_SUBMITTED",
        "GOAL_CHANGE_REQUESTED",
        "GOAL_RESUBMITTED",
        "GOAL_APPROVED",
    ]
    assert audit.actions() == ["GOAL_CREATED", "GOAL_CHANGE_REQUESTED", "GOAL_UPDATED", "GOAL_APPROVED"]


def test_scenario_goal_completion_happy_path(engine, world, db_session, notifier, audit):
    goal = engine.create(ctx(world.employee), _draft(), world.manager.id)
    engine.approve(ctx(world.manager), goal.id)

    goal = engine.submit_completion(ctx(world.employee), goal.id, EVIDENCE)
    assert goal.status == "PENDING_COMPLETION_APPROVAL"
    assert goal.evidence_verification_status == "NOT_VERIFIED"
    assert goal.completion_approval_status == "PENDING"
    assert goal.evidence_link == "https://example.test/demo"

    goal = engine.verify_evidence(
        ctx(world.manager), goal.id, EvidenceVerificationStatus.VERIFIED, "Checked the demo"
    )
    assert goal.status == "PENDING_COMPLETION_APPROVAL"
    assert goal.evidence_verified_by_id == world.manager.id

    goal = engine.approve_completion(ctx(world.manager), goal.id, "Great work")
    assert goal.status == "COMPLETED"
    assert goal.final_completion_at is not None
    assert goal.completion_approval_status == "APPROVED"
    assert goal.evidence_verification_status == "VERIFIED"

    approval = db_session.query(GoalCompletionApproval).filter(GoalCompletionApproval.goal_id == goal.id).one()
    assert approval.decision == "APPROVED"
    assert approval.evidence_verified is True

    completion_sent = [n for n in notifier.sent if n["category"] == "GOAL_COMPLETION_SUBMITTED"]
    assert completion_sent[0]["priority"] == "HIGH"
    assert completion_sent[0]["action_required"] is True

    approved = notifier.sent[-1]
    assert approved["recipient_id"] == world.employee.id
    assert approved["category"] == "GOAL_COMPLETION_APPROVED"
    assert audit.actions() == [
        "GOAL_CREATED",
        "GOAL_APPROVED",
        "GOAL_COMPLETION_SUBMITTED",
        "EVIDENCE_VERIFIED",
        "GOAL_COMPLETION_APPROVED",
    ]


def test_submit_completion_requires_in_progress(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager)
    with pytest.raises(InvalidStateError):
        engine.submit_completion(ctx(world.employee), goal.id, EVIDENCE)


def test_submit_completion_by_other_employee_is_unauthorized(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    with pytest.raises(UnauthorizedError):
        engine.submit_completion(ctx(world.peer), goal.id, EVIDENCE)

    db_session.refresh(goal)
    assert goal.status == "IN_PROGRESS"


def test_submit_completion_requires_evidence_link(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")
    with pytest.raises(InvalidInputError):
        engine.submit_completion(ctx(world.employee), goal.id, CompletionEvidence(link="   "))


def test_submit_completion_without_link_when_cycle_waives_evidence(engine, world, db_session):
    create_cycle(db_session, evidence_required=False)
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    goal = engine.submit_completion(
        ctx(world.employee), goal.id, CompletionEvidence(completion_notes="Done, see wiki")
    )

    assert goal.status == "PENDING_COMPLETION_APPROVAL"
    assert goal.evidence_link is None


def test_verify_evidence_requires_submitted_evidence(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")
    with pytest.raises(InvalidStateError):
        engine.verify_evidence(ctx(world.manager), goal.id, EvidenceVerificationStatus.VERIFIED)


def test_verify_evidence_refused_once_goal_is_completed(engine, world, db_session, audit):
    goal = create_goal(
        db_session,
        world.employee,
        world.manager,
        status="COMPLETED",
        evidence_verification_status="VERIFIED",
    )
    assert goal.has_evidence

    with pytest.raises(InvalidStateError):
        engine.verify_evidence(ctx(world.manager), goal.id, EvidenceVerificationStatus.REJECTED, "late")

    db_session.refresh(goal)
    assert goal.evidence_verification_status == "VERIFIED"
    assert goal.evidence_verification_notes is None
    assert audit.records == []


def test_reject_completion_returns_goal_to_in_progress(engine, world, db_session, notifier):
    goal = create_goal(db_session, world.employee, world.manager, status="PENDING_COMPLETION_APPROVAL")

    goal = engine.reject_completion(ctx(world.manager), goal.id, "Demo link is broken")

    assert goal.status == "IN_PROGRESS"
    assert goal.completion_approval_status == "REJECTED"
    assert goal.manager_completion_comments == "Demo link is broken"
    approval = db_session.query(GoalCompletionApproval).filter(GoalCompletionApproval.goal_id == goal.id).one()
    assert approval.decision == "REJECTED"
    assert approval.evidence_verified is False
    assert notifier.sent[-1]["category"] == "GOAL_COMPLETION_REJECTED"
    assert notifier.sent[-1]["priority"] == "HIGH"

    # Employee can try again
    goal = engine.submit_completion(ctx(world.employee), goal.id, EVIDENCE)
    assert goal.status == "PENDING_COMPLETION_APPROVAL"


def test_additional_evidence_keeps_status_and_allows_resubmission(engine, world, db_session, notifier):
    goal = create_goal(db_session, world.employee, world.manager, status="PENDING_COMPLETION_APPROVAL")

    goal = engine.request_additional_evidence(ctx(world.manager), goal.id, "Add the test report")
    assert goal.status == "PENDING_COMPLETION_APPROVAL"
    assert goal.completion_approval_status == "ADDITIONAL_EVIDENCE_REQUIRED"
    assert goal.evidence_verification_status == "NEEDS_ADDITIONAL_LINK"
    assert notifier.sent[-1]["action_required"] is True

    goal = engine.submit_completion(
        ctx(world.employee), goal.id, CompletionEvidence(link="https://example.test/report")
    )
    assert goal.status == "PENDING_COMPLETION_APPROVAL"
    assert goal.completion_approval_status == "PENDING"
    assert goal.evidence_verification_status == "NOT_VERIFIED"
    assert goal.evidence_link == "https://example.test/report"


def test_resubmission_not_allowed_while_completion_pending(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="PENDING_COMPLETION_APPROVAL")
    with pytest.raises(InvalidStateError):
        engine.submit_completion(ctx(world.employee), goal.id, EVIDENCE)


@pytest.mark.parametrize(
    "operation",
    ["reject_completion", "request_additional_evidence"],
)
def test_completion_decisions_require_pending_completion(engine, world, db_session, operation):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")
    with pytest.raises(InvalidStateError):
        getattr(engine, operation)(ctx(world.manager), goal.id, "reason")


def test_only_reject_completion_moves_back_to_in_progress(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="PENDING_COMPLETION_APPROVAL")

    engine.verify_evidence(ctx(world.manager), goal.id, EvidenceVerificationStatus.REJECTED, "wrong repo")
    engine.request_additional_evidence(ctx(world.manager), goal.id, "send the right repo")
    engine.request_changes(ctx(world.manager), goal.id, "also tighten the title")

    db_session.refresh(goal)
    assert goal.status == "PENDING_COMPLETION_APPROVAL"


def _terminal_operations(world):
    manager, employee = ctx(world.manager), ctx(world.employee)
    return [
        lambda e, gid: e.approve(manager, gid),
        lambda e, gid: e.request_changes(manager, gid, "again"),
        lambda e, gid: e.update(employee, gid, _draft()),
        lambda e, gid: e.submit_completion(employee, gid, EVIDENCE),
        lambda e, gid: e.verify_evidence(manager, gid, EvidenceVerificationStatus.VERIFIED),
        lambda e, gid: e.approve_completion(manager, gid),
        lambda e, gid: e.request_additional_evidence(manager, gid, "more"),
        lambda e, gid: e.reject_completion(manager, gid, "no"),
        lambda e, gid: e.add_progress_note(employee, gid, "still going"),
        lambda e, gid: e.delete(employee, gid),
    ]


@pytest.mark.parametrize("terminal_status", ["COMPLETED", "REJECTED"])
def test_terminal_statuses_are_absorbing(engine, world, db_session, terminal_status):
    goal = create_goal(
        db_session, world.employee, world.manager, status=terminal_status, change_requested=True
    )

    for op in _terminal_operations(world):
        with pytest.raises(InvalidStateError):
            op(engine, goal.id)

    db_session.refresh(goal)
    assert goal.status == terminal_status


def test_employee_deletes_own_goal(engine, world, db_session, audit):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    goal = engine.delete(ctx(world.employee), goal.id)

    assert goal.status == "REJECTED"
    assert audit.actions() == ["GOAL_DELETED"]


def test_employee_cannot_delete_someone_elses_goal(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager)
    with pytest.raises(UnauthorizedError):
        engine.delete(ctx(world.peer), goal.id)


@pytest.mark.parametrize("who", ["other_manager", "admin"])
def test_managers_and_admins_can_delete_any_goal(engine, world, db_session, who):
    goal = create_goal(db_session, world.employee, world.manager)
    goal = engine.delete(ctx(getattr(world, who)), goal.id)
    assert goal.status == "REJECTED"


def test_progress_notes_are_ordered_records(engine, world, db_session, audit):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    engine.add_progress_note(ctx(world.employee), goal.id, "Drafted the schema")
    engine.add_progress_note(ctx(world.employee), goal.id, "  Wired the API  ")

    notes = engine.progress_notes(goal.id)
    assert [n.note for n in notes] == ["Drafted the schema", "Wired the API"]
    assert all(n.recorded_at is not None for n in notes)
    assert audit.actions() == ["PROGRESS_ADDED", "PROGRESS_ADDED"]


def test_progress_note_rules(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager, status="IN_PROGRESS")

    with pytest.raises(InvalidInputError):
        engine.add_progress_note(ctx(world.employee), goal.id, "   ")
    with pytest.raises(UnauthorizedError):
        engine.add_progress_note(ctx(world.manager), goal.id, "manager note")


def test_stale_version_is_rejected(engine, world, db_session):
    goal = create_goal(db_session, world.employee, world.manager)
    first_version = goal.version

    engine.approve(ctx(world.manager), goal.id, expected_version=first_version)

    with pytest.raises(StaleVersionError):
        engine.request_changes(ctx(world.manager), goal.id, "late comment", expected_version=first_version)


def test_failing_notifier_does_not_undo_transition(db_session, world, audit):
    engine = GoalLifecycle(db_session, Directory(db_session), FailingNotifier(), audit)
    goal = create_goal(db_session, world.employee, world.manager)

    goal = engine.approve(ctx(world.manager), goal.id)

    db_session.refresh(goal)
    assert goal.status == "IN_PROGRESS"
    assert audit.actions() == ["GOAL_APPROVED"]


def test_listings_by_owner_and_manager(engine, world, db_session):
    create_goal(db_session, world.employee, world.manager, title="A")
    create_goal(db_session, world.employee, world.manager, title="B", status="IN_PROGRESS")
    create_goal(db_session, world.peer, world.manager, title="C")

    assert {g.title for g in engine.list_for_owner(world.employee.id)} == {"A", "B"}
    assert [g.title for g in engine.list_for_owner(world.employee.id, GoalStatus.PENDING)] == ["A"]
    assert {g.title for g in engine.list_for_manager(world.manager.id)} == {"A", "B", "C"}
    assert engine.list_for_manager(world.other_manager.id) == []
