"""Enrollment notifications.

Delivery (email, SMS, in-app) belongs to whoever subscribes; this module
only builds the events and hands them out. With no subscriber registered
the event is logged and dropped.
"""

import logging
from typing import Any, Callable, Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel

from school_enrollment.core.exceptions import EngineError
from school_enrollment.models.enums import EnrollmentStatus

logger = logging.getLogger(__name__)


class NotificationEvent(BaseModel):
    kind: str
    message: str
    enrollment_id: Optional[UUID] = None
    program_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    status: Optional[EnrollmentStatus] = None
    details: Dict[str, Any] = {}


Subscriber = Callable[[NotificationEvent], None]

_subscribers: List[Subscriber] = []


def subscribe(subscriber: Subscriber) -> None:
    _subscribers.append(subscriber)


def unsubscribe(subscriber: Subscriber) -> None:
    if subscriber in _subscribers:
        _subscribers.remove(subscriber)


class NotificationService:
    @staticmethod
    def publish(event: NotificationEvent) -> None:
        if not _subscribers:
            logger.info(
                "Notification skipped (no subscriber): %s",
                event.kind,
                extra={"enrollment_id": event.enrollment_id, "program_id": event.program_id},
            )
            return
        for subscriber in list(_subscribers):
            try:
                subscriber(event)
            except Exception as e:
                # Delivery failures are logged, never raised
                logger.exception(
                    "Notification subscriber failed for %s: %s",
                    event.kind,
                    e,
                    extra={"enrollment_id": event.enrollment_id, "program_id": event.program_id},
                )

    @staticmethod
    def enrollment_finalized(
        enrollment_id: UUID,
        program_id: UUID,
        student_id: UUID,
        status: EnrollmentStatus,
        comment: Optional[str] = None,
    ) -> None:
        """Enrollment reached COMPLETED or REJECTED"""
        NotificationService.publish(
            NotificationEvent(
                kind=f"enrollment.{status.value}",
                message=comment or f"Enrollment {status.value}",
                enrollment_id=enrollment_id,
                program_id=program_id,
                student_id=student_id,
                status=status,
            )
        )

    @staticmethod
    def admission_refused(error: EngineError, program_id: UUID, student_id: UUID) -> None:
        """Capacity or duplicate-enrollment refusal"""
        NotificationService.publish(
            NotificationEvent(
                kind=f"admission.{error.kind.value.lower()}",
                message=error.message,
                program_id=program_id,
                student_id=student_id,
                details=error.details,
            )
        )
