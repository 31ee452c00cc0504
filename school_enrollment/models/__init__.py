"""Models Package - Export all models for easy imports"""

from school_enrollment.models.base import BaseModel, ActorStampMixin
from school_enrollment.models.enums import *
from school_enrollment.models.academic import Grade, Program, EligibilityRule, eligibility_rule_grades
from school_enrollment.models.enrollment import (
    Enrollment,
    PaymentScheduleLine,
    MonthlyPaymentRecord,
    EnrollmentStatusLog,
)
from school_enrollment.models.billing import Payment


__all__ = [
    # Base classes
    "BaseModel",
    "ActorStampMixin",

    # Academic
    "Grade",
    "Program",
    "EligibilityRule",
    "eligibility_rule_grades",

    # Enrollment
    "Enrollment",
    "PaymentScheduleLine",
    "MonthlyPaymentRecord",
    "EnrollmentStatusLog",

    # Billing
    "Payment",
]
