"""create duty assignments, acknowledgments, live status, reserve pool and activity log

Revision ID: 20261012_0002
Revises: 20261012_0001
Create Date: 2026-10-12 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261012_0002"
down_revision = "20261012_0001"
branch_labels = None
depends_on = None


duty_status_enum = sa.Enum("pending", "confirmed", "requested_change", "cancelled", name="duty_status")
acknowledgment_status_enum = sa.Enum("pending", "acknowledged", "unavailable", name="acknowledgment_status")
live_status_enum = sa.Enum("none", "present", "on_the_way", "unable_to_reach", name="live_status_value")
reserved_status_enum = sa.Enum("available", "assigned", "declined", name="reserved_faculty_status")


def upgrade() -> None:
    op.create_table(
        "duty_assignments",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("exam_id", sa.String(length=36), sa.ForeignKey("exams.id"), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("classroom_id", sa.String(length=36), sa.ForeignKey("classrooms.id"), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("campus", sa.String(length=100), nullable=False),
        sa.Column("department", sa.String(length=200), nullable=False),
        sa.Column("status", duty_status_enum, nullable=False, server_default="pending"),
        sa.Column("notified", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("notified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_duty_assignments_exam_id", "duty_assignments", ["exam_id"])
    op.create_index("ix_duty_assignments_faculty_id", "duty_assignments", ["faculty_id"])
    op.create_index("ix_duty_assignments_date", "duty_assignments", ["date"])
    op.create_index("ix_duty_assignments_status", "duty_assignments", ["status"])

    op.create_table(
        "duty_acknowledgments",
        sa.Column(
            "assignment_id",
            sa.String(length=36),
            sa.ForeignKey("duty_assignments.id"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("status", acknowledgment_status_enum, nullable=False, server_default="pending"),
        sa.Column("deadline", sa.DateTime(timezone=True), nullable=False),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("acknowledged_by_id", sa.String(length=36), nullable=True),
        sa.Column("unavailable_reason", sa.Text(), nullable=True),
        sa.Column("reminder_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
    )
    op.create_index("ix_duty_acknowledgments_status", "duty_acknowledgments", ["status"])

    op.create_table(
        "duty_live_statuses",
        sa.Column(
            "assignment_id",
            sa.String(length=36),
            sa.ForeignKey("duty_assignments.id"),
            primary_key=True,
            nullable=False,
        ),
        sa.Column("status", live_status_enum, nullable=False, server_default="none"),
        sa.Column("eta", sa.String(length=100), nullable=True),
        sa.Column("emergency_reason", sa.Text(), nullable=True),
        sa.Column("reported_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("opens_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("closes_at", sa.DateTime(timezone=True), nullable=False),
    )

    op.create_table(
        "reserved_faculty_entries",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("assignment_id", sa.String(length=36), sa.ForeignKey("duty_assignments.id"), nullable=False),
        sa.Column("faculty_id", sa.String(length=36), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", reserved_status_enum, nullable=False, server_default="available"),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("assignment_id", "faculty_id", name="uq_reserved_faculty_identity"),
    )
    op.create_index("ix_reserved_faculty_entries_assignment_id", "reserved_faculty_entries", ["assignment_id"])
    op.create_index("ix_reserved_faculty_entries_faculty_id", "reserved_faculty_entries", ["faculty_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column(
            "user_id",
            sa.String(length=36),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("action", sa.String(length=100), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=True),
        sa.Column("entity_id", sa.String(length=36), nullable=True),
        sa.Column("details", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_entity", "activity_logs", ["entity_type", "entity_id"])


def downgrade() -> None:
    op.drop_index("ix_activity_logs_entity", table_name="activity_logs")
    op.drop_table("activity_logs")
    op.drop_index("ix_reserved_faculty_entries_faculty_id", table_name="reserved_faculty_entries")
    op.drop_index("ix_reserved_faculty_entries_assignment_id", table_name="reserved_faculty_entries")
    op.drop_table("reserved_faculty_entries")
    op.drop_table("duty_live_statuses")
    op.drop_index("ix_duty_acknowledgments_status", table_name="duty_acknowledgments")
    op.drop_table("duty_acknowledgments")
    op.drop_index("ix_duty_assignments_status", table_name="duty_assignments")
    op.drop_index("ix_duty_assignments_date", table_name="duty_assignments")
    op.drop_index("ix_duty_assignments_faculty_id", table_name="duty_assignments")
    op.drop_index("ix_duty_assignments_exam_id", table_name="duty_assignments")
    op.drop_table("duty_assignments")
    bind = op.get_bind()
    reserved_status_enum.drop(bind, checkfirst=True)
    live_status_enum.drop(bind, checkfirst=True)
    acknowledgment_status_enum.drop(bind, checkfirst=True)
    duty_status_enum.drop(bind, checkfirst=True)
