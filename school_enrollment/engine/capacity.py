"""Admission checks: program open, room left, no duplicate enrollment"""

from typing import Optional

from school_enrollment.core.exceptions import (
    CapacityExceeded,
    DuplicateActiveEnrollment,
    DuplicateNonActiveEnrollment,
    ProgramNotActive,
)
from school_enrollment.models.enums import EnrollmentStatus, ErrorKind, ProgramStatus
from school_enrollment.schemas.enrollment import AdmissionDecision, EnrollmentState, ProgramSnapshot

OPEN_PROGRAM_STATUS = ProgramStatus.ACTIVE

# Terminal-success state: the student is already a member of the program
ACTIVE_ENROLLMENT_STATUS = EnrollmentStatus.COMPLETED


def can_enroll(
    program: ProgramSnapshot,
    current_enrollment_count: int,
    existing_enrollment: Optional[EnrollmentState] = None,
) -> AdmissionDecision:
    """
    Decide whether a new enrollment may be created for ``program``.

    Checks run in a fixed order (program status, capacity, duplicates) and
    the first failure wins. The count and any existing enrollment must be
    read inside the same transaction that inserts the new row.
    """
    if program.status != OPEN_PROGRAM_STATUS:
        return AdmissionDecision(allowed=False, reason=ErrorKind.PROGRAM_NOT_ACTIVE)

    if program.capacity is not None and current_enrollment_count >= program.capacity:
        return AdmissionDecision(allowed=False, reason=ErrorKind.CAPACITY_EXCEEDED)

    if existing_enrollment is not None:
        reason = (
            ErrorKind.DUPLICATE_ACTIVE_ENROLLMENT
            if existing_enrollment.status == ACTIVE_ENROLLMENT_STATUS
            else ErrorKind.DUPLICATE_NON_ACTIVE_ENROLLMENT
        )
        return AdmissionDecision(
            allowed=False,
            reason=reason,
            existing_enrollment_id=existing_enrollment.id,
            existing_status=existing_enrollment.status,
        )

    return AdmissionDecision(allowed=True)


def raise_for_decision(decision: AdmissionDecision, program: ProgramSnapshot) -> None:
    """Turn a refusal into the matching exception; no-op when allowed."""
    if decision.allowed:
        return
    if decision.reason == ErrorKind.PROGRAM_NOT_ACTIVE:
        raise ProgramNotActive(
            "Program is not open for enrollment",
            program_id=str(program.id) if program.id else None,
            program_status=program.status.value,
        )
    if decision.reason == ErrorKind.CAPACITY_EXCEEDED:
        raise CapacityExceeded(
            "Program is at full capacity",
            program_id=str(program.id) if program.id else None,
            capacity=program.capacity,
        )
    if decision.reason == ErrorKind.DUPLICATE_ACTIVE_ENROLLMENT:
        raise DuplicateActiveEnrollment(
            "Student is already actively enrolled in this program",
            enrollment_id=str(decision.existing_enrollment_id) if decision.existing_enrollment_id else None,
            status=decision.existing_status.value if decision.existing_status else None,
        )
    if decision.reason == ErrorKind.DUPLICATE_NON_ACTIVE_ENROLLMENT:
        raise DuplicateNonActiveEnrollment(decision.existing_enrollment_id, decision.existing_status)
    raise ValueError(f"Unhandled admission refusal: {decision.reason!r}")
