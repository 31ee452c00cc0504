"""Centralized Enum Definitions"""

import enum


# Domain 1: Academic reference data
class GradeLevel(str, enum.Enum):
    """School level a grade belongs to"""
    KINDERGARTEN = "kindergarten"
    PRIMARY = "primary"
    MIDDLE = "middle"
    HIGH = "high"


class ProgramKind(str, enum.Enum):
    """What a student enrolls into"""
    ACADEMIC = "academic"
    CLUB = "club"


class ProgramStatus(str, enum.Enum):
    """Program lifecycle; only ACTIVE accepts new enrollments"""
    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


# Domain 2: Eligibility
class RuleType(str, enum.Enum):
    """Grade eligibility policy for a program"""
    ALL_GRADES = "all_grades"
    INCLUDE_ONLY = "include_only"
    EXCLUDE_ONLY = "exclude_only"


# Domain 3: Enrollment workflow
class EnrollmentStatus(str, enum.Enum):
    """Enrollment workflow states"""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    NEEDS_REVIEW = "needs_review"
    COMPLETED = "completed"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class WorkflowEvent(str, enum.Enum):
    """Triggers that move an enrollment between states"""
    SUBMIT = "submit"
    FLAG_FOR_REVIEW = "flag_for_review"
    APPROVE = "approve"
    AUTO_APPROVE = "auto_approve"
    REJECT = "reject"
    CANCEL = "cancel"
    DELETE = "delete"


class ReviewReason(str, enum.Enum):
    """Why a submission was routed to manual review"""
    FEE_ADJUSTED = "fee_adjusted"
    LOW_INITIAL_PAYMENT = "low_initial_payment"


# Domain 4: Billing
class PaymentStatus(str, enum.Enum):
    """Payment lifecycle"""
    PENDING = "pending"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    REVERSED = "reversed"
    FAILED = "failed"


class PaymentMethod(str, enum.Enum):
    """How money was received"""
    CASH = "cash"
    ORANGE_MONEY = "orange_money"
    BANK_TRANSFER = "bank_transfer"


class RemainderPolicy(str, enum.Enum):
    """Which installment absorbs the rounding remainder"""
    FIRST = "first"
    LAST = "last"


# Domain 5: Errors
class ErrorKind(str, enum.Enum):
    """Failure kinds surfaced to callers; values double as API error codes"""
    PROGRAM_NOT_ACTIVE = "PROGRAM_NOT_ACTIVE"
    CAPACITY_EXCEEDED = "CAPACITY_EXCEEDED"
    DUPLICATE_ACTIVE_ENROLLMENT = "DUPLICATE_ACTIVE_ENROLLMENT"
    DUPLICATE_NON_ACTIVE_ENROLLMENT = "DUPLICATE_NON_ACTIVE_ENROLLMENT"
    GRADE_NOT_ELIGIBLE = "GRADE_NOT_ELIGIBLE"
    NO_GRADE_PLACEMENT = "NO_GRADE_PLACEMENT"
    INVALID_SCHEDULE_PARAMETERS = "INVALID_SCHEDULE_PARAMETERS"
    SCHEDULE_ALREADY_EXISTS = "SCHEDULE_ALREADY_EXISTS"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    MISSING_REQUIRED_COMMENT = "MISSING_REQUIRED_COMMENT"
    INVALID_PAYMENT_TRANSITION = "INVALID_PAYMENT_TRANSITION"
    CONCURRENT_MODIFICATION = "CONCURRENT_MODIFICATION"
    NOT_FOUND = "NOT_FOUND"
