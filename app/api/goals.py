from fastapi import APIRouter, Depends, Header, Query, Response, status

from app.api.deps import get_goal_engine
from app.core.access import can_view_goal
from app.core.errors import UnauthorizedError
from app.core.optimistic_lock import parse_if_match, set_etag
from app.core.rbac import employee_side, manager_side
from app.core.security import CallerContext, get_current_user
from app.models.goal import Goal, GoalStatus
from app.models.goal_completion_approval import GoalCompletionApproval
from app.models.goal_progress_note import GoalProgressNote
from app.models.user import Role, User
from app.schemas.goal import (
    ChangeRequestPayload,
    CompletionApprovalOut,
    CompletionApprovePayload,
    CompletionSubmitPayload,
    EvidenceVerifyPayload,
    GoalCreate,
    GoalOut,
    GoalUpdate,
    ProgressNoteCreate,
    ProgressNoteOut,
    ReasonPayload,
)
from app.workflow.goal_lifecycle import CompletionEvidence, GoalDraft, GoalLifecycle

router = APIRouter(prefix="/goals", tags=["goals"])


def to_out(g: Goal) -> GoalOut:
    return GoalOut(
        id=g.id,
        title=g.title,
        description=g.description,
        category=g.category,
        priority=g.priority,
        status=g.status,
        assigned_to_id=g.assigned_to_id,
        assigned_manager_id=g.assigned_manager_id,
        start_date=g.start_date,
        end_date=g.end_date,
        approved_by_id=g.approved_by_id,
        approved_at=g.approved_at,
        change_requested=g.change_requested,
        last_reviewed_by_id=g.last_reviewed_by_id,
        last_reviewed_at=g.last_reviewed_at,
        resubmitted_at=g.resubmitted_at,
        evidence_link=g.evidence_link,
        evidence_description=g.evidence_description,
        evidence_access_notes=g.evidence_access_notes,
        completion_notes=g.completion_notes,
        completion_submitted_at=g.completion_submitted_at,
        evidence_verification_status=g.evidence_verification_status,
        evidence_verification_notes=g.evidence_verification_notes,
        evidence_verified_by_id=g.evidence_verified_by_id,
        evidence_verified_at=g.evidence_verified_at,
        completion_approval_status=g.completion_approval_status,
        completion_approved_by_id=g.completion_approved_by_id,
        completion_approved_at=g.completion_approved_at,
        final_completion_at=g.final_completion_at,
        manager_completion_comments=g.manager_completion_comments,
        created_at=g.created_at,
        updated_at=g.updated_at,
        version=g.version,
    )


def note_to_out(n: GoalProgressNote) -> ProgressNoteOut:
    return ProgressNoteOut(
        id=n.id,
        goal_id=n.goal_id,
        author_user_id=n.author_user_id,
        note=n.note,
        recorded_at=n.recorded_at,
    )


def approval_to_out(a: GoalCompletionApproval) -> CompletionApprovalOut:
    return CompletionApprovalOut(
        id=a.id,
        goal_id=a.goal_id,
        decided_by_id=a.decided_by_id,
        decision=a.decision,
        decided_at=a.decided_at,
        manager_comments=a.manager_comments,
        evidence_verified=a.evidence_verified,
        decision_rationale=a.decision_rationale,
    )


def _respond(response: Response, goal: Goal) -> GoalOut:
    set_etag(response, goal.version)
    return to_out(goal)


def _viewable(engine: GoalLifecycle, ctx: CallerContext, goal_id: int) -> Goal:
    goal = engine.get(goal_id)
    if not can_view_goal(ctx, goal):
        raise UnauthorizedError("You do not have access to this goal")
    return goal


@router.post("", response_model=GoalOut, status_code=status.HTTP_201_CREATED)
def create_goal(
    payload: GoalCreate,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(employee_side),
):
    draft = GoalDraft(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    goal = engine.create(CallerContext.for_user(user), draft, payload.manager_id)
    return _respond(response, goal)


@router.get("", response_model=list[GoalOut])
def list_goals(
    scope: str = Query(default="mine", pattern="^(mine|team|all)$"),
    status_filter: GoalStatus | None = Query(default=None, alias="status"),
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(get_current_user),
):
    """
    scope=mine  goals the caller owns (default)
    scope=team  goals the caller manages (managers and admins)
    scope=all   every goal (admins only)
    """
    if scope == "team":
        if user.role == Role.EMPLOYEE.value:
            raise UnauthorizedError("Only managers can list team goals")
        goals = engine.list_for_manager(user.id, status_filter)
    elif scope == "all":
        if user.role != Role.ADMIN.value:
            raise UnauthorizedError("Only admins can list all goals")
        goals = engine.list_all(status_filter)
    else:
        goals = engine.list_for_owner(user.id, status_filter)
    return [to_out(g) for g in goals]


@router.get("/{goal_id}", response_model=GoalOut)
def get_goal(
    goal_id: int,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(get_current_user),
):
    goal = _viewable(engine, CallerContext.for_user(user), goal_id)
    return _respond(response, goal)


@router.put("/{goal_id}", response_model=GoalOut)
def update_goal(
    goal_id: int,
    payload: GoalUpdate,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(employee_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    draft = GoalDraft(
        title=payload.title,
        description=payload.description,
        category=payload.category,
        priority=payload.priority,
        start_date=payload.start_date,
        end_date=payload.end_date,
    )
    goal = engine.update(CallerContext.for_user(user), goal_id, draft, parse_if_match(if_match))
    return _respond(response, goal)


@router.put("/{goal_id}/approve", response_model=GoalOut)
def approve_goal(
    goal_id: int,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.approve(CallerContext.for_user(user), goal_id, parse_if_match(if_match))
    return _respond(response, goal)


@router.put("/{goal_id}/request-changes", response_model=GoalOut)
def request_goal_changes(
    goal_id: int,
    payload: ChangeRequestPayload,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.request_changes(
        CallerContext.for_user(user), goal_id, payload.comments, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.post("/{goal_id}/submit-completion", response_model=GoalOut)
def submit_goal_completion(
    goal_id: int,
    payload: CompletionSubmitPayload,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(employee_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    evidence = CompletionEvidence(
        link=payload.evidence_link,
        description=payload.evidence_description,
        access_notes=payload.evidence_access_notes,
        completion_notes=payload.completion_notes,
    )
    goal = engine.submit_completion(
        CallerContext.for_user(user), goal_id, evidence, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.put("/{goal_id}/evidence/verify", response_model=GoalOut)
def verify_goal_evidence(
    goal_id: int,
    payload: EvidenceVerifyPayload,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.verify_evidence(
        CallerContext.for_user(user), goal_id, payload.status, payload.notes, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.post("/{goal_id}/approve-completion", response_model=GoalOut)
def approve_goal_completion(
    goal_id: int,
    response: Response,
    payload: CompletionApprovePayload | None = None,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    comments = payload.comments if payload else None
    goal = engine.approve_completion(
        CallerContext.for_user(user), goal_id, comments, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.post("/{goal_id}/request-additional-evidence", response_model=GoalOut)
def request_additional_evidence(
    goal_id: int,
    payload: ReasonPayload,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.request_additional_evidence(
        CallerContext.for_user(user), goal_id, payload.reason, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.post("/{goal_id}/reject-completion", response_model=GoalOut)
def reject_goal_completion(
    goal_id: int,
    payload: ReasonPayload,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(manager_side),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.reject_completion(
        CallerContext.for_user(user), goal_id, payload.reason, parse_if_match(if_match)
    )
    return _respond(response, goal)


@router.post("/{goal_id}/progress", response_model=ProgressNoteOut, status_code=status.HTTP_201_CREATED)
def add_goal_progress(
    goal_id: int,
    payload: ProgressNoteCreate,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(employee_side),
):
    note = engine.add_progress_note(CallerContext.for_user(user), goal_id, payload.note)
    return note_to_out(note)


@router.get("/{goal_id}/progress", response_model=list[ProgressNoteOut])
def list_goal_progress(
    goal_id: int,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(get_current_user),
):
    _viewable(engine, CallerContext.for_user(user), goal_id)
    return [note_to_out(n) for n in engine.progress_notes(goal_id)]


@router.get("/{goal_id}/completion-approvals", response_model=list[CompletionApprovalOut])
def list_completion_approvals(
    goal_id: int,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(get_current_user),
):
    _viewable(engine, CallerContext.for_user(user), goal_id)
    return [approval_to_out(a) for a in engine.completion_history(goal_id)]


@router.delete("/{goal_id}", response_model=GoalOut)
def delete_goal(
    goal_id: int,
    response: Response,
    engine: GoalLifecycle = Depends(get_goal_engine),
    user: User = Depends(get_current_user),
    if_match: str | None = Header(default=None, alias="If-Match"),
):
    goal = engine.delete(CallerContext.for_user(user), goal_id, parse_if_match(if_match))
    return _respond(response, goal)
