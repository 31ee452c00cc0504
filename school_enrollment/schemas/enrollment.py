from typing import Any, Dict, List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from school_enrollment.models.enums import (
    EnrollmentStatus,
    ErrorKind,
    ProgramKind,
    ProgramStatus,
    ReviewReason,
    WorkflowEvent,
)
from school_enrollment.schemas.payment import InitialPayment


# Engine values

class ProgramSnapshot(BaseModel):
    """Program fields the capacity guard reads"""
    id: Optional[UUID] = None
    kind: ProgramKind = ProgramKind.ACADEMIC
    status: ProgramStatus
    capacity: Optional[int] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class EnrollmentState(BaseModel):
    """Enrollment fields the workflow reads"""
    id: Optional[UUID] = None
    status: EnrollmentStatus
    original_fee: int
    adjusted_fee: Optional[int] = None
    submitted_at: Optional[datetime] = None
    auto_approve_at: Optional[datetime] = None
    draft_expires_at: Optional[datetime] = None
    review_flagged: bool = False

    model_config = ConfigDict(from_attributes=True, frozen=True)

    @property
    def effective_fee(self) -> int:
        return self.adjusted_fee if self.adjusted_fee is not None else self.original_fee

    @property
    def fee_adjusted(self) -> bool:
        return self.adjusted_fee is not None and self.adjusted_fee != self.original_fee


class AdmissionDecision(BaseModel):
    """
    Capacity guard verdict. ``existing_*`` are filled whenever a previous
    enrollment for the same student and program was found.
    """
    allowed: bool
    reason: Optional[ErrorKind] = None
    existing_enrollment_id: Optional[UUID] = None
    existing_status: Optional[EnrollmentStatus] = None


class Transition(BaseModel):
    """
    A validated status change, not yet persisted.

    ``changes`` holds the enrollment columns to write alongside the new
    status; the caller applies them with a compare-and-swap on
    ``from_status``.
    """
    event: WorkflowEvent
    from_status: EnrollmentStatus
    to_status: EnrollmentStatus
    comment: Optional[str] = None
    review_reason: Optional[ReviewReason] = None
    changes: Dict[str, Any] = {}


# API

class EnrollmentCreate(BaseModel):
    program_id: UUID
    student_id: UUID
    grade_id: Optional[UUID] = None
    start_month: Optional[int] = Field(None, ge=1, le=12)
    start_year: Optional[int] = Field(None, ge=2020, le=2100)
    period_count: Optional[int] = Field(None, ge=1, le=12)


class FeeAdjustment(BaseModel):
    adjusted_fee: int
    reason: Optional[str] = None


class EnrollmentSubmit(BaseModel):
    initial_payment: Optional[InitialPayment] = None


class ApproveRequest(BaseModel):
    comment: Optional[str] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class ScheduleLineResponse(BaseModel):
    id: UUID
    sequence: int
    amount: int

    model_config = ConfigDict(from_attributes=True)


class MonthlyRecordResponse(BaseModel):
    id: UUID
    month: int
    year: int
    amount: int
    is_paid: bool
    payment_id: Optional[UUID] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentResponse(BaseModel):
    id: UUID
    enrollment_number: str
    student_id: UUID
    program_id: UUID
    grade_id: Optional[UUID] = None
    status: EnrollmentStatus
    original_fee: int
    adjusted_fee: Optional[int] = None
    adjustment_reason: Optional[str] = None
    start_month: Optional[int] = None
    start_year: Optional[int] = None
    period_count: Optional[int] = None
    created_at: datetime
    draft_expires_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    auto_approve_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    review_flagged: bool = False
    review_reason: Optional[ReviewReason] = None
    status_comment: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class EnrollmentDetail(EnrollmentResponse):
    schedule_lines: List[ScheduleLineResponse] = []
    monthly_records: List[MonthlyRecordResponse] = []
