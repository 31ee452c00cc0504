"""Domain 3: Enrollments, payment schedules and status history"""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from school_enrollment.models.base import BaseModel, ActorStampMixin
from school_enrollment.models.enums import EnrollmentStatus, ReviewReason
from school_enrollment.utils.time import get_utc_now


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


enrollment_status_enum = ENUM(EnrollmentStatus, name="enrollment_status", values_callable=_enum_values)


class Enrollment(BaseModel, ActorStampMixin):
    """
    One student's commitment to a program.

    Status only changes through the workflow transitions; the row is never
    deleted once it has left DRAFT (cancellation and rejection are states).
    """
    __tablename__ = "enrollments"
    __table_args__ = (
        UniqueConstraint("program_id", "student_id", name="uq_enrollments_program_student"),
    )

    enrollment_number = Column(String(30), nullable=False, unique=True, index=True)
    student_id = Column(UUID(as_uuid=True), nullable=False, index=True)
    program_id = Column(UUID(as_uuid=True), ForeignKey("programs.id", ondelete="RESTRICT"), nullable=False, index=True)
    grade_id = Column(UUID(as_uuid=True), ForeignKey("grades.id", ondelete="RESTRICT"), nullable=True, index=True)
    status = Column(enrollment_status_enum, default=EnrollmentStatus.DRAFT, nullable=False, index=True)

    # Financial
    original_fee = Column(Integer, nullable=False)
    adjusted_fee = Column(Integer, nullable=True)
    adjustment_reason = Column(Text, nullable=True)

    # Club billing period (monthly programs only)
    start_month = Column(Integer, nullable=True)
    start_year = Column(Integer, nullable=True)
    period_count = Column(Integer, nullable=True)

    # Workflow timestamps
    draft_expires_at = Column(DateTime, nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    auto_approve_at = Column(DateTime, nullable=True, index=True)
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(UUID(as_uuid=True), nullable=True)

    # Review flag, decided once at submission
    review_flagged = Column(Boolean, default=False, nullable=False)
    review_reason = Column(
        ENUM(ReviewReason, name="review_reason", values_callable=_enum_values),
        nullable=True,
    )

    # Last status change (completed/rejected/cancelled)
    status_comment = Column(Text, nullable=True)
    status_changed_at = Column(DateTime, nullable=True)
    status_changed_by = Column(UUID(as_uuid=True), nullable=True)

    # Relationships
    program = relationship("Program", back_populates="enrollments")
    grade = relationship("Grade")
    schedule_lines = relationship(
        "PaymentScheduleLine",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PaymentScheduleLine.sequence",
    )
    monthly_records = relationship(
        "MonthlyPaymentRecord",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by=lambda: [MonthlyPaymentRecord.year, MonthlyPaymentRecord.month],
    )
    payments = relationship("Payment", back_populates="enrollment", passive_deletes=True)
    status_logs = relationship(
        "EnrollmentStatusLog",
        back_populates="enrollment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="EnrollmentStatusLog.changed_at",
    )

    @property
    def effective_fee(self) -> int:
        return self.adjusted_fee if self.adjusted_fee is not None else self.original_fee

    def __repr__(self) -> str:
        return f"<Enrollment {self.enrollment_number} - {self.status}>"


class PaymentScheduleLine(BaseModel):
    """
    One installment of an enrollment's payment plan.
    Sequence numbers start at 1 and have no gaps.
    """
    __tablename__ = "payment_schedule_lines"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "sequence", name="uq_schedule_lines_enrollment_sequence"),
    )

    enrollment_id = Column(UUID(as_uuid=True), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)

    enrollment = relationship("Enrollment", back_populates="schedule_lines")

    def __repr__(self) -> str:
        return f"<PaymentScheduleLine #{self.sequence} {self.amount}>"


class MonthlyPaymentRecord(BaseModel):
    """
    Club fee due for one calendar month. ``payment_id`` points at the payment
    that settled the period, if any.
    """
    __tablename__ = "monthly_payment_records"
    __table_args__ = (
        UniqueConstraint("enrollment_id", "year", "month", name="uq_monthly_records_period"),
    )

    enrollment_id = Column(UUID(as_uuid=True), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    amount = Column(Integer, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)
    payment_id = Column(UUID(as_uuid=True), ForeignKey("payments.id", ondelete="SET NULL"), nullable=True)

    enrollment = relationship("Enrollment", back_populates="monthly_records")
    payment = relationship("Payment")

    def __repr__(self) -> str:
        return f"<MonthlyPaymentRecord {self.month:02d}/{self.year} {self.amount}>"


class EnrollmentStatusLog(BaseModel):
    """
    Append-only audit trail of applied workflow transitions.
    """
    __tablename__ = "enrollment_status_logs"

    enrollment_id = Column(UUID(as_uuid=True), ForeignKey("enrollments.id", ondelete="CASCADE"), nullable=False, index=True)
    from_status = Column(enrollment_status_enum, nullable=False)
    to_status = Column(enrollment_status_enum, nullable=False)
    comment = Column(Text, nullable=True)
    changed_by = Column(UUID(as_uuid=True), nullable=True)
    changed_at = Column(DateTime, default=get_utc_now, nullable=False)

    enrollment = relationship("Enrollment", back_populates="status_logs")

    def __repr__(self) -> str:
        return f"<EnrollmentStatusLog {self.from_status} -> {self.to_status}>"
