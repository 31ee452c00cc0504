"""initial enrollment schema

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "a1b2c3d4e5f6"
down_revision = None
branch_labels = None
depends_on = None


ENUMS = {
    "grade_level": ("kindergarten", "primary", "middle", "high"),
    "program_kind": ("academic", "club"),
    "program_status": ("draft", "active", "inactive", "closed"),
    "rule_type": ("all_grades", "include_only", "exclude_only"),
    "enrollment_status": ("draft", "submitted", "needs_review", "completed", "rejected", "cancelled"),
    "review_reason": ("fee_adjusted", "low_initial_payment"),
    "payment_status": ("pending", "confirmed", "rejected", "reversed", "failed"),
    "payment_method": ("cash", "orange_money", "bank_transfer"),
}


def _enum(name):
    return postgresql.ENUM(*ENUMS[name], name=name, create_type=False)


def _base_columns():
    return [
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    for name, values in ENUMS.items():
        postgresql.ENUM(*values, name=name).create(op.get_bind(), checkfirst=True)

    op.create_table(
        "grades",
        *_base_columns(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("level", _enum("grade_level"), nullable=False),
        sa.Column("order", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_grades_id"), "grades", ["id"], unique=False)
    op.create_index(op.f("ix_grades_level"), "grades", ["level"], unique=False)
    op.create_index(op.f("ix_grades_order"), "grades", ["order"], unique=False)

    op.create_table(
        "programs",
        *_base_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kind", _enum("program_kind"), nullable=False),
        sa.Column("status", _enum("program_status"), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("grade_id", sa.UUID(), nullable=True),
        sa.Column("fee", sa.Integer(), nullable=False),
        sa.Column("installment_count", sa.Integer(), nullable=True),
        sa.Column("monthly_fee", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["grade_id"], ["grades.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_programs_id"), "programs", ["id"], unique=False)
    op.create_index(op.f("ix_programs_kind"), "programs", ["kind"], unique=False)
    op.create_index(op.f("ix_programs_status"), "programs", ["status"], unique=False)
    op.create_index(op.f("ix_programs_grade_id"), "programs", ["grade_id"], unique=False)

    op.create_table(
        "eligibility_rules",
        *_base_columns(),
        sa.Column("program_id", sa.UUID(), nullable=False),
        sa.Column("rule_type", _enum("rule_type"), nullable=False),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_eligibility_rules_id"), "eligibility_rules", ["id"], unique=False)
    op.create_index(op.f("ix_eligibility_rules_program_id"), "eligibility_rules", ["program_id"], unique=True)

    op.create_table(
        "eligibility_rule_grades",
        sa.Column("rule_id", sa.UUID(), nullable=False),
        sa.Column("grade_id", sa.UUID(), nullable=False),
        sa.ForeignKeyConstraint(["rule_id"], ["eligibility_rules.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["grade_id"], ["grades.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("rule_id", "grade_id"),
    )

    op.create_table(
        "enrollments",
        *_base_columns(),
        sa.Column("created_by", sa.UUID(), nullable=True),
        sa.Column("enrollment_number", sa.String(30), nullable=False),
        sa.Column("student_id", sa.UUID(), nullable=False),
        sa.Column("program_id", sa.UUID(), nullable=False),
        sa.Column("grade_id", sa.UUID(), nullable=True),
        sa.Column("status", _enum("enrollment_status"), nullable=False),
        sa.Column("original_fee", sa.Integer(), nullable=False),
        sa.Column("adjusted_fee", sa.Integer(), nullable=True),
        sa.Column("adjustment_reason", sa.Text(), nullable=True),
        sa.Column("start_month", sa.Integer(), nullable=True),
        sa.Column("start_year", sa.Integer(), nullable=True),
        sa.Column("period_count", sa.Integer(), nullable=True),
        sa.Column("draft_expires_at", sa.DateTime(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("auto_approve_at", sa.DateTime(), nullable=True),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.UUID(), nullable=True),
        sa.Column("review_flagged", sa.Boolean(), nullable=False),
        sa.Column("review_reason", _enum("review_reason"), nullable=True),
        sa.Column("status_comment", sa.Text(), nullable=True),
        sa.Column("status_changed_at", sa.DateTime(), nullable=True),
        sa.Column("status_changed_by", sa.UUID(), nullable=True),
        sa.ForeignKeyConstraint(["program_id"], ["programs.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["grade_id"], ["grades.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("program_id", "student_id", name="uq_enrollments_program_student"),
    )
    op.create_index(op.f("ix_enrollments_id"), "enrollments", ["id"], unique=False)
    op.create_index(op.f("ix_enrollments_created_by"), "enrollments", ["created_by"], unique=False)
    op.create_index(op.f("ix_enrollments_enrollment_number"), "enrollments", ["enrollment_number"], unique=True)
    op.create_index(op.f("ix_enrollments_student_id"), "enrollments", ["student_id"], unique=False)
    op.create_index(op.f("ix_enrollments_program_id"), "enrollments", ["program_id"], unique=False)
    op.create_index(op.f("ix_enrollments_grade_id"), "enrollments", ["grade_id"], unique=False)
    op.create_index(op.f("ix_enrollments_status"), "enrollments", ["status"], unique=False)
    op.create_index(op.f("ix_enrollments_auto_approve_at"), "enrollments", ["auto_approve_at"], unique=False)

    op.create_table(
        "payment_schedule_lines",
        *_base_columns(),
        sa.Column("enrollment_id", sa.UUID(), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("enrollment_id", "sequence", name="uq_schedule_lines_enrollment_sequence"),
    )
    op.create_index(op.f("ix_payment_schedule_lines_id"), "payment_schedule_lines", ["id"], unique=False)
    op.create_index(
        op.f("ix_payment_schedule_lines_enrollment_id"), "payment_schedule_lines", ["enrollment_id"], unique=False
    )

    op.create_table(
        "payments",
        *_base_columns(),
        sa.Column("enrollment_id", sa.UUID(), nullable=True),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("status", _enum("payment_status"), nullable=False),
        sa.Column("method", _enum("payment_method"), nullable=False),
        sa.Column("receipt_number", sa.String(30), nullable=False),
        sa.Column("transaction_ref", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("recorded_by", sa.UUID(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("confirmed_by", sa.UUID(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(), nullable=True),
        sa.Column("reversed_by", sa.UUID(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_payments_id"), "payments", ["id"], unique=False)
    op.create_index(op.f("ix_payments_enrollment_id"), "payments", ["enrollment_id"], unique=False)
    op.create_index(op.f("ix_payments_status"), "payments", ["status"], unique=False)
    op.create_index(op.f("ix_payments_receipt_number"), "payments", ["receipt_number"], unique=True)

    op.create_table(
        "monthly_payment_records",
        *_base_columns(),
        sa.Column("enrollment_id", sa.UUID(), nullable=False),
        sa.Column("month", sa.Integer(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False),
        sa.Column("payment_id", sa.UUID(), nullable=True),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["payment_id"], ["payments.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("enrollment_id", "year", "month", name="uq_monthly_records_period"),
    )
    op.create_index(op.f("ix_monthly_payment_records_id"), "monthly_payment_records", ["id"], unique=False)
    op.create_index(
        op.f("ix_monthly_payment_records_enrollment_id"), "monthly_payment_records", ["enrollment_id"], unique=False
    )

    op.create_table(
        "enrollment_status_logs",
        *_base_columns(),
        sa.Column("enrollment_id", sa.UUID(), nullable=False),
        sa.Column("from_status", _enum("enrollment_status"), nullable=False),
        sa.Column("to_status", _enum("enrollment_status"), nullable=False),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("changed_by", sa.UUID(), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["enrollment_id"], ["enrollments.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_enrollment_status_logs_id"), "enrollment_status_logs", ["id"], unique=False)
    op.create_index(
        op.f("ix_enrollment_status_logs_enrollment_id"), "enrollment_status_logs", ["enrollment_id"], unique=False
    )


def downgrade() -> None:
    op.drop_table("enrollment_status_logs")
    op.drop_table("monthly_payment_records")
    op.drop_table("payments")
    op.drop_table("payment_schedule_lines")
    op.drop_table("enrollments")
    op.drop_table("eligibility_rule_grades")
    op.drop_table("eligibility_rules")
    op.drop_table("programs")
    op.drop_table("grades")
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
