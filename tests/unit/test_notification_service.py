"""Unit tests for enrollment notifications."""

from uuid import uuid4

from school_enrollment.core.exceptions import CapacityExceeded
from school_enrollment.models.enums import EnrollmentStatus
from school_enrollment.services.notification_service import (
    NotificationService,
    subscribe,
    unsubscribe,
)


def test_subscriber_receives_finalized_event():
    received = []
    subscribe(received.append)
    try:
        enrollment_id = uuid4()
        NotificationService.enrollment_finalized(
            enrollment_id, uuid4(), uuid4(), EnrollmentStatus.REJECTED, "Incomplete file"
        )
    finally:
        unsubscribe(received.append)

    assert len(received) == 1
    event = received[0]
    assert event.kind == "enrollment.rejected"
    assert event.message == "Incomplete file"
    assert event.enrollment_id == enrollment_id


def test_admission_refusal_carries_error_details():
    received = []
    subscribe(received.append)
    try:
        error = CapacityExceeded("Program is at full capacity", capacity=30)
        NotificationService.admission_refused(error, uuid4(), uuid4())
    finally:
        unsubscribe(received.append)

    assert received[0].kind == "admission.capacity_exceeded"
    assert received[0].details == {"capacity": 30}


def test_no_subscriber_is_not_an_error():
    NotificationService.enrollment_finalized(uuid4(), uuid4(), uuid4(), EnrollmentStatus.COMPLETED)


def test_failing_subscriber_does_not_raise_or_starve_others():
    received = []

    def broken(event):
        raise RuntimeError("SMS gateway down")

    subscribe(broken)
    subscribe(received.append)
    try:
        NotificationService.enrollment_finalized(uuid4(), uuid4(), uuid4(), EnrollmentStatus.COMPLETED)
    finally:
        unsubscribe(broken)
        unsubscribe(received.append)

    assert [event.kind for event in received] == ["enrollment.completed"]
