"""Baseline - users, cases, tasks, applications, chat, notifications, audit

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-17
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _ts(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _user_fk(name: str, nullable: bool = True, ondelete: str = "SET NULL") -> sa.Column:
    return sa.Column(name, sa.Uuid(), sa.ForeignKey("users.id", ondelete=ondelete), nullable=nullable)


def upgrade() -> None:
    # ==========================================================================
    # Users and student profiles
    # ==========================================================================
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(50)),
        sa.Column("avatar_url", sa.String(500)),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _ts("last_login_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_users_role_active", "users", ["role", "is_active"])

    op.create_table(
        "students",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        _user_fk("assigned_agent_id"),
        _user_fk("assigned_counselor_id"),
        _user_fk("referred_by_id"),
        sa.Column("nationality", sa.String(100)),
        sa.Column("current_education", sa.String(255)),
        sa.Column("intended_study_level", sa.String(100)),
        sa.Column("preferred_countries", sa.JSON(), nullable=False),
        sa.Column("selected_services", sa.JSON(), nullable=False),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("onboarding_completed", sa.Boolean(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("idx_students_agent", "students", ["assigned_agent_id"])
    op.create_index("idx_students_counselor", "students", ["assigned_counselor_id"])
    op.create_index("idx_students_referred_by", "students", ["referred_by_id"])

    # ==========================================================================
    # Service requests
    # ==========================================================================
    op.create_table(
        "service_requests",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("student_id", sa.Uuid(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_type", sa.String(50), nullable=False),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("progress", sa.Integer(), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        _ts("deadline", nullable=True),
        _user_fk("assigned_counselor_id"),
        _user_fk("assigned_agent_id"),
        _user_fk("assigned_by_id"),
        _ts("assigned_at", nullable=True),
        sa.Column("is_agent_initiated", sa.Boolean(), nullable=False),
        sa.Column("agent_approval_status", sa.String(20)),
        _user_fk("requested_by_id"),
        _user_fk("approved_by_id"),
        _ts("approved_at", nullable=True),
        _ts("rejected_at", nullable=True),
        sa.Column("approval_notes", sa.Text()),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _ts("applied_at"),
        _ts("completed_at", nullable=True),
        _ts("cancelled_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("idx_sr_student_status", "service_requests", ["student_id", "status"])
    op.create_index("idx_sr_student_type", "service_requests", ["student_id", "service_type"])
    op.create_index(
        "idx_sr_agent_pipeline", "service_requests", ["assigned_agent_id", "status", "priority", "deadline"]
    )
    op.create_index("idx_sr_counselor_status", "service_requests", ["assigned_counselor_id", "status"])
    op.create_index("idx_sr_approval", "service_requests", ["is_agent_initiated", "agent_approval_status"])

    op.create_table(
        "service_request_status_history",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("seq", sa.Integer(), nullable=False),
        sa.Column(
            "service_request_id", sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("event", sa.String(30), nullable=False),
        sa.Column("from_status", sa.String(30)),
        sa.Column("to_status", sa.String(30), nullable=False),
        _user_fk("changed_by_user_id"),
        sa.Column("note", sa.Text()),
        _ts("changed_at"),
    )
    op.create_index("idx_sr_history_sr", "service_request_status_history", ["service_request_id", "seq"])

    op.create_table(
        "service_request_notes",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "service_request_id", sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("text", sa.Text(), nullable=False),
        _user_fk("added_by_id"),
        sa.Column("is_internal", sa.Boolean(), nullable=False),
        _ts("added_at"),
    )
    op.create_index("idx_sr_notes_sr", "service_request_notes", ["service_request_id", "added_at"])

    # ==========================================================================
    # Tasks
    # ==========================================================================
    op.create_table(
        "tasks",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "service_request_id", sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("task_type", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("instructions", sa.Text()),
        _user_fk("assigned_to_id", nullable=False, ondelete="CASCADE"),
        _user_fk("assigned_by_id"),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        _ts("due_date", nullable=True),
        sa.Column("submission", sa.JSON()),
        sa.Column("feedback", sa.JSON()),
        sa.Column("revision_history", sa.JSON(), nullable=False),
        sa.Column("status_history", sa.JSON(), nullable=False),
        sa.Column("pending_files", sa.JSON(), nullable=False),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("idx_tasks_sr_status", "tasks", ["service_request_id", "status"])
    op.create_index("idx_tasks_assignee_status_due", "tasks", ["assigned_to_id", "status", "due_date"])
    op.create_index("idx_tasks_assigned_by", "tasks", ["assigned_by_id", "status"])

    # ==========================================================================
    # University applications
    # ==========================================================================
    op.create_table(
        "applications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("student_id", sa.Uuid(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False),
        _user_fk("agent_id", nullable=False, ondelete="CASCADE"),
        sa.Column("assigned_by", sa.String(10), nullable=False),
        _user_fk("assigned_by_user_id"),
        sa.Column("university_name", sa.String(255), nullable=False),
        sa.Column("program_name", sa.String(255), nullable=False),
        sa.Column("intake", sa.String(50), nullable=False),
        sa.Column("country", sa.String(100)),
        sa.Column("status", sa.String(30), nullable=False),
        sa.Column("documents", sa.JSON(), nullable=False),
        sa.Column("checklist", sa.JSON(), nullable=False),
        sa.Column("remarks", sa.JSON(), nullable=False),
        sa.Column("timeline", sa.JSON(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        _ts("deleted_at", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.Column("version", sa.Integer(), nullable=False),
    )
    op.create_index("idx_applications_agent_status", "applications", ["agent_id", "status"])
    op.create_index("idx_applications_student_status", "applications", ["student_id", "status"])
    op.create_index("idx_applications_deleted", "applications", ["is_deleted"])

    # ==========================================================================
    # Chat
    # ==========================================================================
    op.create_table(
        "messages",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "service_request_id", sa.Uuid(),
            sa.ForeignKey("service_requests.id", ondelete="CASCADE"), nullable=False,
        ),
        _user_fk("sender_id", nullable=False, ondelete="CASCADE"),
        sa.Column("sender_role", sa.String(20), nullable=False),
        _user_fk("recipient_id"),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(20), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("read_by", sa.JSON(), nullable=False),
        sa.Column("is_edited", sa.Boolean(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("idx_messages_sr_created", "messages", ["service_request_id", "created_at"])

    # ==========================================================================
    # Notifications
    # ==========================================================================
    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("recipient_id", nullable=False, ondelete="CASCADE"),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("channel", sa.String(10), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("priority", sa.String(10), nullable=False),
        sa.Column("action_url", sa.String(500)),
        sa.Column("action_text", sa.String(100)),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        _ts("read_at", nullable=True),
        sa.Column("email_sent", sa.Boolean(), nullable=False),
        _ts("email_sent_at", nullable=True),
        sa.Column("email_error", sa.Text()),
        _user_fk("sent_by_id"),
        sa.Column("target_type", sa.String(10)),
        sa.Column("target_role", sa.String(20)),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        _ts("archived_at", nullable=True),
        sa.Column("related_service_request_id", sa.Uuid()),
        sa.Column("related_task_id", sa.Uuid()),
        sa.Column("metadata", sa.JSON(), nullable=False),
        _ts("created_at"),
    )
    op.create_index("idx_notif_recipient_unread", "notifications", ["recipient_id", "is_read", "created_at"])
    op.create_index("idx_notif_recipient_archived", "notifications", ["recipient_id", "is_archived"])
    op.create_index("idx_notif_broadcast", "notifications", ["sent_by_id", "created_at"])

    # ==========================================================================
    # Audit trail
    # ==========================================================================
    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Uuid(), primary_key=True),
        _user_fk("actor_user_id"),
        sa.Column("actor_role", sa.String(20)),
        sa.Column("action", sa.String(60), nullable=False),
        sa.Column("entity_type", sa.String(30), nullable=False),
        sa.Column("entity_id", sa.String(64)),
        sa.Column("previous_state", sa.JSON()),
        sa.Column("new_state", sa.JSON()),
        sa.Column("details", sa.JSON()),
        sa.Column("ip_address", sa.String(45)),
        sa.Column("user_agent", sa.String(500)),
        _ts("timestamp"),
    )
    op.create_index("idx_audit_entity", "audit_logs", ["entity_type", "entity_id", "timestamp"])
    op.create_index("idx_audit_actor", "audit_logs", ["actor_user_id", "timestamp"])
    op.create_index("idx_audit_action", "audit_logs", ["action", "timestamp"])


def downgrade() -> None:
    for table in (
        "audit_logs",
        "notifications",
        "messages",
        "applications",
        "tasks",
        "service_request_notes",
        "service_request_status_history",
        "service_requests",
        "students",
        "users",
    ):
        op.drop_table(table)
