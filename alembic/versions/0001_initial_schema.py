"""initial schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("department", sa.String(100), nullable=True),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("manager_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('ADMIN','MANAGER','EMPLOYEE')", name="ck_users_role"),
        sa.CheckConstraint("status IN ('ACTIVE','INACTIVE')", name="ck_users_status"),
        sa.CheckConstraint("manager_id IS NULL OR manager_id <> id", name="ck_users_not_own_manager"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_manager_id", "users", ["manager_id"])

    op.create_table(
        "review_cycles",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("requires_completion_approval", sa.Boolean(), nullable=False),
        sa.Column("evidence_required", sa.Boolean(), nullable=False),
        sa.Column(
            "created_by_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True
        ),
        *_timestamps(),
        sa.CheckConstraint("status IN ('ACTIVE','CLOSED')", name="ck_review_cycles_status"),
        sa.CheckConstraint("end_date >= start_date", name="ck_review_cycles_dates"),
    )

    op.create_table(
        "goals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(30), nullable=False),
        sa.Column("priority", sa.String(20), nullable=False),
        sa.Column("assigned_to_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column(
            "assigned_manager_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("change_requested", sa.Boolean(), nullable=False),
        sa.Column("last_reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("last_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("resubmitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("evidence_link", sa.String(500), nullable=True),
        sa.Column("evidence_description", sa.Text(), nullable=True),
        sa.Column("evidence_access_notes", sa.Text(), nullable=True),
        sa.Column("completion_notes", sa.Text(), nullable=True),
        sa.Column("completion_submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("evidence_verification_status", sa.String(30), nullable=True),
        sa.Column("evidence_verification_notes", sa.Text(), nullable=True),
        sa.Column("evidence_verified_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("evidence_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completion_approval_status", sa.String(30), nullable=True),
        sa.Column("completion_approved_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("completion_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("final_completion_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_completion_comments", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.CheckConstraint(
            "status IN ('PENDING','IN_PROGRESS','PENDING_COMPLETION_APPROVAL','COMPLETED','REJECTED')",
            name="ck_goals_status",
        ),
        sa.CheckConstraint(
            "category IN ('TECHNICAL','BEHAVIORAL','PROFESSIONAL_DEVELOPMENT','OTHER')",
            name="ck_goals_category",
        ),
        sa.CheckConstraint("priority IN ('HIGH','MEDIUM','LOW')", name="ck_goals_priority"),
        sa.CheckConstraint("end_date >= start_date", name="ck_goals_dates"),
        sa.CheckConstraint(
            "evidence_verification_status IS NULL OR evidence_verification_status IN "
            "('NOT_VERIFIED','VERIFIED','NEEDS_ADDITIONAL_LINK','REJECTED')",
            name="ck_goals_evidence_verification_status",
        ),
        sa.CheckConstraint(
            "completion_approval_status IS NULL OR completion_approval_status IN "
            "('PENDING','APPROVED','ADDITIONAL_EVIDENCE_REQUIRED','REJECTED')",
            name="ck_goals_completion_approval_status",
        ),
        sa.CheckConstraint(
            "(status <> 'PENDING') OR (evidence_link IS NULL AND completion_submitted_at IS NULL)",
            name="ck_goals_pending_no_evidence",
        ),
        sa.CheckConstraint(
            "(status <> 'COMPLETED') OR (final_completion_at IS NOT NULL)",
            name="ck_goals_completed_ts",
        ),
    )
    op.create_index("ix_goals_assigned_to_id", "goals", ["assigned_to_id"])
    op.create_index("ix_goals_assigned_manager_id", "goals", ["assigned_manager_id"])

    op.create_table(
        "goal_progress_notes",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("author_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("note", sa.Text(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_goal_progress_notes_goal_id", "goal_progress_notes", ["goal_id"])

    op.create_table(
        "goal_completion_approvals",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("decided_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("decision", sa.String(20), nullable=False),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("manager_comments", sa.Text(), nullable=True),
        sa.Column("evidence_verified", sa.Boolean(), nullable=False),
        sa.Column("decision_rationale", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("decision IN ('APPROVED','REJECTED')", name="ck_goal_completion_approvals_decision"),
    )
    op.create_index("ix_goal_completion_approvals_goal_id", "goal_completion_approvals", ["goal_id"])

    op.create_table(
        "performance_reviews",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "cycle_id", sa.Integer(), sa.ForeignKey("review_cycles.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("self_assessment", sa.Text(), nullable=True),
        sa.Column("self_rating", sa.Integer(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manager_feedback", sa.Text(), nullable=True),
        sa.Column("manager_rating", sa.Integer(), nullable=True),
        sa.Column("rating_justification", sa.Text(), nullable=True),
        sa.Column("compensation_recommendations", sa.Text(), nullable=True),
        sa.Column("next_period_goals", sa.Text(), nullable=True),
        sa.Column("reviewed_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("review_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("employee_response", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("cycle_id", "user_id", name="uq_performance_reviews_cycle_user"),
        sa.CheckConstraint(
            "status IN ('PENDING','SELF_ASSESSMENT_COMPLETED','COMPLETED','COMPLETED_AND_ACKNOWLEDGED')",
            name="ck_performance_reviews_status",
        ),
        sa.CheckConstraint(
            "self_rating IS NULL OR (self_rating BETWEEN 1 AND 5)", name="ck_performance_reviews_self_rating"
        ),
        sa.CheckConstraint(
            "manager_rating IS NULL OR (manager_rating BETWEEN 1 AND 5)",
            name="ck_performance_reviews_manager_rating",
        ),
        sa.CheckConstraint(
            "(status <> 'PENDING') OR (submitted_at IS NULL AND review_completed_at IS NULL)",
            name="ck_review_ts_pending",
        ),
        sa.CheckConstraint(
            "(status <> 'COMPLETED') OR (submitted_at IS NOT NULL AND review_completed_at IS NOT NULL)",
            name="ck_review_ts_completed",
        ),
        sa.CheckConstraint(
            "(status <> 'COMPLETED_AND_ACKNOWLEDGED') OR "
            "(review_completed_at IS NOT NULL AND acknowledged_at IS NOT NULL)",
            name="ck_review_ts_acknowledged",
        ),
    )
    op.create_index("ix_performance_reviews_cycle_id", "performance_reviews", ["cycle_id"])
    op.create_index("ix_performance_reviews_user_id", "performance_reviews", ["user_id"])

    op.create_table(
        "review_goal_links",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "review_id",
            sa.Integer(),
            sa.ForeignKey("performance_reviews.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("linked_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("review_id", "goal_id", name="uq_review_goal_links_review_goal"),
    )
    op.create_index("ix_review_goal_links_review_id", "review_goal_links", ["review_id"])

    op.create_table(
        "feedback",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("goal_id", sa.Integer(), sa.ForeignKey("goals.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "review_id",
            sa.Integer(),
            sa.ForeignKey("performance_reviews.id", ondelete="CASCADE"),
            nullable=True,
        ),
        sa.Column("given_by_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("feedback_type", sa.String(50), nullable=True),
        sa.Column("given_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("goal_id IS NOT NULL OR review_id IS NOT NULL", name="ck_feedback_has_target"),
    )
    op.create_index("ix_feedback_goal_id", "feedback", ["goal_id"])
    op.create_index("ix_feedback_review_id", "feedback", ["review_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("related_entity_type", sa.String(50), nullable=True),
        sa.Column("related_entity_id", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("priority", sa.String(20), nullable=True),
        sa.Column("action_required", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("status IN ('UNREAD','READ')", name="ck_notifications_status"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("outcome", sa.String(20), nullable=False),
        sa.Column("event_metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_events_actor_user_id", "audit_events", ["actor_user_id"])
    op.create_index("ix_audit_events_action", "audit_events", ["action"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("notifications")
    op.drop_table("feedback")
    op.drop_table("review_goal_links")
    op.drop_table("performance_reviews")
    op.drop_table("goal_completion_approvals")
    op.drop_table("goal_progress_notes")
    op.drop_table("goals")
    op.drop_table("review_cycles")
    op.drop_table("users")
