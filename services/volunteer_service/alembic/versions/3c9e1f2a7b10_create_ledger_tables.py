"""create_ledger_tables

Revision ID: 3c9e1f2a7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3c9e1f2a7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enum(name: str, *labels: str) -> sa.Enum:
    return sa.Enum(*labels, name=name, create_constraint=False)


USER_ROLE = _enum("user_role", "VOLUNTEER", "ADMIN")
EVENT_STATUS = _enum(
    "event_status", "DRAFT", "PUBLISHED", "IN_PROGRESS", "COMPLETED", "CANCELLED"
)
URGENCY_LEVEL = _enum("urgency_level", "LOW", "MEDIUM", "HIGH", "CRITICAL")
ASSIGNMENT_STATUS = _enum(
    "assignment_status", "PENDING", "CONFIRMED", "DECLINED", "CANCELLED", "COMPLETED"
)
PARTICIPATION_STATUS = _enum(
    "participation_status", "REGISTERED", "CONFIRMED", "COMPLETED", "NO_SHOW", "CANCELLED"
)
ATTENDANCE_TYPE = _enum("attendance_type", "PRESENT", "ABSENT", "LATE", "EXCUSED")
NOTIFICATION_TYPE = _enum(
    "notification_type",
    "ASSIGNMENT",
    "REMINDER",
    "EVENT_UPDATE",
    "MATCHING_SUGGESTION",
    "ANNOUNCEMENT",
    "SYSTEM",
)
NOTIFICATION_PRIORITY = _enum("notification_priority", "LOW", "MEDIUM", "HIGH", "URGENT")

ALL_ENUMS = (
    USER_ROLE,
    EVENT_STATUS,
    URGENCY_LEVEL,
    ASSIGNMENT_STATUS,
    PARTICIPATION_STATUS,
    ATTENDANCE_TYPE,
    NOTIFICATION_TYPE,
    NOTIFICATION_PRIORITY,
)


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Upgrade schema - Create assignment and participation ledger tables."""

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", USER_ROLE, nullable=False),
        _ts("created_at"),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(length=100), nullable=True),
        sa.Column("urgency", URGENCY_LEVEL, nullable=False),
        sa.Column("status", EVENT_STATUS, nullable=False),
        _ts("start_date", nullable=False),
        _ts("end_date", nullable=False),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("max_volunteers", sa.Integer(), nullable=False),
        sa.Column("current_volunteers", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_by", sa.Uuid(), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint("max_volunteers >= 1", name="ck_events_max_volunteers_positive"),
        sa.CheckConstraint(
            "current_volunteers >= 0", name="ck_events_current_volunteers_non_negative"
        ),
        sa.CheckConstraint(
            "current_volunteers <= max_volunteers",
            name="ck_events_current_volunteers_within_capacity",
        ),
        sa.ForeignKeyConstraint(
            ["created_by"],
            ["users.id"],
            name="fk_events_created_by_users",
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_events"),
    )
    op.create_index("ix_events_status", "events", ["status"])
    op.create_index("ix_events_start_date", "events", ["start_date"])
    op.create_index("ix_events_created_by", "events", ["created_by"])

    op.create_table(
        "assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("volunteer_id", sa.Uuid(), nullable=False),
        sa.Column("status", ASSIGNMENT_STATUS, nullable=False),
        sa.Column("match_score", sa.Float(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text(), nullable=True),
        _ts("assigned_at", nullable=False),
        _ts("confirmed_at"),
        _ts("updated_at"),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name="fk_assignments_event_id_events",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["volunteer_id"],
            ["users.id"],
            name="fk_assignments_volunteer_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_assignments"),
        sa.UniqueConstraint(
            "event_id", "volunteer_id", name="uq_assignments_event_volunteer"
        ),
    )
    op.create_index("ix_assignments_event_id", "assignments", ["event_id"])
    op.create_index("ix_assignments_volunteer_id", "assignments", ["volunteer_id"])
    op.create_index("ix_assignments_status", "assignments", ["status"])
    op.create_index("ix_assignments_assigned_at", "assignments", ["assigned_at"])

    op.create_table(
        "volunteer_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("volunteer_id", sa.Uuid(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=False),
        sa.Column("assignment_id", sa.Uuid(), nullable=True),
        sa.Column("status", PARTICIPATION_STATUS, nullable=False),
        sa.Column("hours_worked", sa.Float(), nullable=False, server_default="0"),
        sa.Column("performance_rating", sa.Integer(), nullable=True),
        sa.Column("attendance", ATTENDANCE_TYPE, nullable=False),
        _ts("participation_date", nullable=False),
        _ts("completion_date"),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("recorded_by", sa.Uuid(), nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
        sa.CheckConstraint(
            "hours_worked >= 0 AND hours_worked <= 24",
            name="ck_volunteer_history_hours_worked_range",
        ),
        sa.CheckConstraint(
            "performance_rating IS NULL OR (performance_rating >= 1 AND performance_rating <= 5)",
            name="ck_volunteer_history_performance_rating_range",
        ),
        sa.ForeignKeyConstraint(
            ["volunteer_id"],
            ["users.id"],
            name="fk_volunteer_history_volunteer_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["event_id"],
            ["events.id"],
            name="fk_volunteer_history_event_id_events",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["assignment_id"],
            ["assignments.id"],
            name="fk_volunteer_history_assignment_id_assignments",
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_volunteer_history"),
        sa.UniqueConstraint(
            "volunteer_id", "event_id", name="uq_volunteer_history_volunteer_event"
        ),
    )
    op.create_index(
        "ix_volunteer_history_volunteer_id", "volunteer_history", ["volunteer_id"]
    )
    op.create_index("ix_volunteer_history_event_id", "volunteer_history", ["event_id"])
    op.create_index(
        "ix_volunteer_history_participation_date",
        "volunteer_history",
        ["participation_date"],
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("type", NOTIFICATION_TYPE, nullable=False),
        sa.Column("priority", NOTIFICATION_PRIORITY, nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("event_id", sa.Uuid(), nullable=True),
        sa.Column("related_id", sa.Uuid(), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        _ts("read_at"),
        sa.Column("metadata_json", sa.JSON(), nullable=True),
        _ts("expires_at"),
        _ts("created_at"),
        sa.ForeignKeyConstraint(
            ["user_id"],
            ["users.id"],
            name="fk_notifications_user_id_users",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name="pk_notifications"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    """Downgrade schema - Drop ledger tables."""
    op.drop_table("notifications")
    op.drop_table("volunteer_history")
    op.drop_table("assignments")
    op.drop_table("events")
    op.drop_table("users")

    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.drop(bind, checkfirst=True)
