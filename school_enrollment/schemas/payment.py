from typing import List, Optional
from uuid import UUID
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field

from school_enrollment.models.enums import PaymentMethod, PaymentStatus


# Engine values

class ScheduleLine(BaseModel):
    """One due amount in an ordered plan"""
    id: Optional[UUID] = None
    sequence: int = Field(..., ge=1)
    amount: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class MonthlyPeriod(BaseModel):
    """One club billing month"""
    id: Optional[UUID] = None
    month: int = Field(..., ge=1, le=12)
    year: int
    amount: int = Field(..., ge=0)

    model_config = ConfigDict(from_attributes=True, frozen=True)


class PaymentRecord(BaseModel):
    """What the allocator needs to know about a payment"""
    id: Optional[UUID] = None
    amount: int
    status: PaymentStatus
    confirmed_at: Optional[datetime] = None
    reversed_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True)


class LineAllocation(BaseModel):
    line_id: Optional[UUID] = None
    sequence: int
    amount: int
    allocated: int
    fully_paid: bool

    @property
    def outstanding(self) -> int:
        return self.amount - self.allocated


class AllocationSummary(BaseModel):
    """
    Waterfall result for one enrollment.

    ``remaining_balance`` is signed: a negative value is an overpayment.
    ``display_balance`` is the same figure floored at zero.
    """
    fee: int
    total_due: int
    total_paid: int
    remaining_balance: int
    display_balance: int
    overpayment: int
    payment_percentage: int
    is_fully_paid: bool
    lines: List[LineAllocation]


class LineCoverage(BaseModel):
    line_id: Optional[UUID] = None
    sequence: int
    applied: int
    percent_covered: int
    fully_paid: bool


class PaymentPreview(BaseModel):
    """What a prospective payment would settle, given what is already paid"""
    amount: int
    covered: int
    excess: int
    lines: List[LineCoverage]


# API

class PaymentCreate(BaseModel):
    enrollment_id: UUID
    amount: int = Field(..., gt=0)
    method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    confirm: bool = True


class InitialPayment(BaseModel):
    """Payment taken while the enrollment form is being submitted"""
    amount: int = Field(..., gt=0)
    method: PaymentMethod
    transaction_ref: Optional[str] = Field(None, max_length=100)


class PaymentReverse(BaseModel):
    reason: Optional[str] = None


class PaymentPreviewRequest(BaseModel):
    amount: int = Field(..., gt=0)


class PaymentResponse(BaseModel):
    id: UUID
    enrollment_id: Optional[UUID] = None
    amount: int
    status: PaymentStatus
    method: PaymentMethod
    receipt_number: str
    transaction_ref: Optional[str] = None
    recorded_at: datetime
    confirmed_at: Optional[datetime] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
