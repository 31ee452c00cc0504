"""Enrollment engine error taxonomy.

Every failure the engine or its services can report is an ``EngineError``
carrying an ``ErrorKind``. The API layer turns them into the standard error
envelope using ``status_code``; nothing below the API catches them.
"""

from typing import Any, Dict, Optional
from uuid import UUID

from school_enrollment.models.enums import EnrollmentStatus, ErrorKind, PaymentStatus


class EngineError(Exception):
    """Base class for all enrollment engine failures"""

    kind: ErrorKind
    status_code: int = 400

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.kind.value}: {self.message}>"


# Admission
class ProgramNotActive(EngineError):
    kind = ErrorKind.PROGRAM_NOT_ACTIVE


class CapacityExceeded(EngineError):
    kind = ErrorKind.CAPACITY_EXCEEDED
    status_code = 409


class DuplicateActiveEnrollment(EngineError):
    kind = ErrorKind.DUPLICATE_ACTIVE_ENROLLMENT
    status_code = 409


class DuplicateNonActiveEnrollment(EngineError):
    """
    An earlier enrollment exists for the same student and program.

    Informational: the caller decides whether to reuse or cancel it, so the
    existing record's id and status are always attached.
    """
    kind = ErrorKind.DUPLICATE_NON_ACTIVE_ENROLLMENT
    status_code = 409

    def __init__(self, enrollment_id: Optional[UUID], status: EnrollmentStatus) -> None:
        super().__init__(
            f"Student has an existing enrollment (status: {status.value})",
            enrollment_id=str(enrollment_id) if enrollment_id else None,
            status=status.value,
        )
        self.enrollment_id = enrollment_id
        self.status = status


class GradeNotEligible(EngineError):
    kind = ErrorKind.GRADE_NOT_ELIGIBLE


class NoGradePlacement(EngineError):
    kind = ErrorKind.NO_GRADE_PLACEMENT


# Schedules
class InvalidScheduleParameters(EngineError):
    kind = ErrorKind.INVALID_SCHEDULE_PARAMETERS
    status_code = 422


class ScheduleAlreadyExists(EngineError):
    kind = ErrorKind.SCHEDULE_ALREADY_EXISTS
    status_code = 409


# Workflow
class InvalidStateTransition(EngineError):
    kind = ErrorKind.INVALID_STATE_TRANSITION
    status_code = 409

    def __init__(self, current: EnrollmentStatus, requested: str) -> None:
        super().__init__(
            f"Cannot {requested} an enrollment in status '{current.value}'",
            current=current.value,
            requested=requested,
        )
        self.current = current
        self.requested = requested


class MissingRequiredComment(EngineError):
    kind = ErrorKind.MISSING_REQUIRED_COMMENT
    status_code = 422


class InvalidPaymentTransition(EngineError):
    kind = ErrorKind.INVALID_PAYMENT_TRANSITION
    status_code = 409

    def __init__(self, current: PaymentStatus, target: PaymentStatus) -> None:
        super().__init__(
            f"Payment in status '{current.value}' cannot become '{target.value}'",
            current=current.value,
            requested=target.value,
        )
        self.current = current
        self.target = target


# Persistence boundary
class ConcurrentModification(EngineError):
    kind = ErrorKind.CONCURRENT_MODIFICATION
    status_code = 409


class NotFound(EngineError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404
