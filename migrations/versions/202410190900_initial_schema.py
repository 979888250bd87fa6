"""Initial tuition planner schema."""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "202410190900"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "teacher",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "student",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "academy_class",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("monthly_fee", sa.Integer(), nullable=False),
        sa.Column("sessions_per_month", sa.Integer(), nullable=False),
        sa.Column("color", sa.String(length=7), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("monthly_fee >= 0", name="chk_class_monthly_fee"),
        sa.CheckConstraint("sessions_per_month >= 0", name="chk_class_sessions_per_month"),
        sa.ForeignKeyConstraint(["teacher_id"], ["teacher.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "class_student",
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["class_id"], ["academy_class.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["student_id"], ["student.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("class_id", "student_id"),
    )

    op.create_table(
        "class_schedule",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("weekday", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.CheckConstraint("weekday BETWEEN 0 AND 6", name="chk_class_schedule_weekday"),
        sa.CheckConstraint("end_time > start_time", name="chk_class_schedule_time_order"),
        sa.ForeignKeyConstraint(["class_id"], ["academy_class.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "academy_closure",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("closure_date", sa.Date(), nullable=False),
        sa.Column("closure_type", sa.String(length=10), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=True),
        sa.Column("teacher_id", sa.Integer(), nullable=True),
        sa.Column("reason", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "closure_type IN ('global', 'class', 'teacher')", name="chk_closure_type"
        ),
        sa.ForeignKeyConstraint(["class_id"], ["academy_class.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["teacher_id"], ["teacher.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_academy_closure_closure_date", "academy_closure", ["closure_date"], unique=False
    )

    op.create_table(
        "tuition_fee",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("period_start_date", sa.Date(), nullable=False),
        sa.Column("period_end_date", sa.Date(), nullable=False),
        sa.Column("sessions_count", sa.Integer(), nullable=False),
        sa.Column("per_session_fee", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("student_name_snapshot", sa.String(length=120), nullable=True),
        sa.Column("class_name_snapshot", sa.String(length=120), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="chk_tuition_fee_month"),
        sa.CheckConstraint(
            "period_end_date >= period_start_date", name="chk_tuition_fee_period_range"
        ),
        sa.ForeignKeyConstraint(["class_id"], ["academy_class.id"]),
        sa.ForeignKeyConstraint(["student_id"], ["student.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "student_id", "class_id", "year", "month", name="uq_tuition_fee_student_class_month"
        ),
    )

    op.create_table(
        "tuition_ledger_record",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("student_id", sa.Integer(), nullable=False),
        sa.Column("class_id", sa.Integer(), nullable=False),
        sa.Column("session_date", sa.Date(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("amount", sa.Numeric(precision=12, scale=2), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("month BETWEEN 1 AND 12", name="chk_ledger_month"),
        sa.ForeignKeyConstraint(["class_id"], ["academy_class.id"]),
        sa.ForeignKeyConstraint(["student_id"], ["student.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "student_id", "class_id", "session_date", name="uq_ledger_student_class_date"
        ),
    )


def downgrade() -> None:
    op.drop_table("tuition_ledger_record")
    op.drop_table("tuition_fee")
    op.drop_index("ix_academy_closure_closure_date", table_name="academy_closure")
    op.drop_table("academy_closure")
    op.drop_table("class_schedule")
    op.drop_table("class_student")
    op.drop_table("academy_class")
    op.drop_table("student")
    op.drop_table("teacher")
