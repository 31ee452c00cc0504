"""Domain 4: Payments"""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID, ENUM
from sqlalchemy.orm import relationship

from school_enrollment.models.base import BaseModel
from school_enrollment.models.enums import PaymentMethod, PaymentStatus
from school_enrollment.utils.time import get_utc_now


def _enum_values(enum_cls):
    return [e.value for e in enum_cls]


class Payment(BaseModel):
    """
    Money received against an enrollment.

    The amount never changes once recorded; only the status moves. Payments
    outlive their enrollment: deleting a draft enrollment nulls the link.
    """
    __tablename__ = "payments"

    enrollment_id = Column(UUID(as_uuid=True), ForeignKey("enrollments.id", ondelete="SET NULL"), nullable=True, index=True)
    amount = Column(Integer, nullable=False)
    status = Column(
        ENUM(PaymentStatus, name="payment_status", values_callable=_enum_values),
        default=PaymentStatus.PENDING,
        nullable=False,
        index=True,
    )
    method = Column(
        ENUM(PaymentMethod, name="payment_method", values_callable=_enum_values),
        nullable=False,
    )
    receipt_number = Column(String(30), nullable=False, unique=True, index=True)
    transaction_ref = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)

    recorded_at = Column(DateTime, default=get_utc_now, nullable=False)
    recorded_by = Column(UUID(as_uuid=True), nullable=True)
    confirmed_at = Column(DateTime, nullable=True)
    confirmed_by = Column(UUID(as_uuid=True), nullable=True)
    reversed_at = Column(DateTime, nullable=True)
    reversed_by = Column(UUID(as_uuid=True), nullable=True)
    reversal_reason = Column(Text, nullable=True)

    enrollment = relationship("Enrollment", back_populates="payments")

    def __repr__(self) -> str:
        return f"<Payment {self.receipt_number} {self.amount} - {self.status}>"
